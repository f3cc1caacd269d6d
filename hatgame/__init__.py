"""Black Hat / White Hat word game server"""
