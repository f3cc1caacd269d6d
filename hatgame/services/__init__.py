# Game services
