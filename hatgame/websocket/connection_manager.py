"""
WebSocket连接管理器
管理玩家WebSocket连接和房间广播
"""

import json
import logging
from typing import Dict, Set, Optional, List, Any
from datetime import datetime
from fastapi import WebSocket

from hatgame.core.config import settings

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    WebSocket连接管理器

    Connections are keyed by player id and grouped by room. A failed send
    is logged and counted, never raised to the caller.
    """

    def __init__(self, max_connections: Optional[int] = None):
        # 活跃连接: player_id -> WebSocket
        self.active_connections: Dict[str, WebSocket] = {}

        # 房间连接映射: room_id -> Set[player_id]
        self.room_connections: Dict[str, Set[str]] = {}

        # 连接元数据: player_id -> connection_info
        self.connection_metadata: Dict[str, Dict[str, Any]] = {}

        self.max_connections = max_connections or settings.MAX_WEBSOCKET_CONNECTIONS
        self.failed_sends = 0

    async def connect(self, room_id: str, player_id: str, websocket: WebSocket) -> bool:
        """建立WebSocket连接并加入房间"""
        if len(self.active_connections) >= self.max_connections and player_id not in self.active_connections:
            logger.warning(f"Connection limit reached, rejecting player {player_id}")
            return False

        await websocket.accept()

        # 同一玩家重复连接时替换旧连接
        if player_id in self.active_connections:
            await self.disconnect(player_id, "New connection established")

        self.active_connections[player_id] = websocket
        self.room_connections.setdefault(room_id, set()).add(player_id)
        self.connection_metadata[player_id] = {
            "connected_at": datetime.now(),
            "room_id": room_id,
        }

        logger.info(f"Player {player_id} connected to room {room_id}")
        return True

    async def disconnect(self, player_id: str, reason: str = "Connection closed") -> None:
        """断开WebSocket连接"""
        websocket = self.active_connections.get(player_id)
        self.forget(player_id)
        if websocket:
            try:
                await websocket.close(code=1000, reason=reason)
            except RuntimeError:
                pass  # 连接可能已经关闭

        logger.info(f"Player {player_id} disconnected: {reason}")

    def forget(self, player_id: str, websocket: Optional[WebSocket] = None) -> None:
        """Drop bookkeeping for a socket the client already closed"""
        if websocket is not None and self.active_connections.get(player_id) is not websocket:
            return  # already replaced by a newer connection
        metadata = self.connection_metadata.pop(player_id, None)
        self.active_connections.pop(player_id, None)
        room_id = metadata["room_id"] if metadata else None
        if room_id and room_id in self.room_connections:
            self.room_connections[room_id].discard(player_id)
            if not self.room_connections[room_id]:
                del self.room_connections[room_id]

    async def send_to_player(self, room_id: str, player_id: str, message: dict) -> bool:
        """发送消息给特定玩家"""
        websocket = self.active_connections.get(player_id)
        if not websocket or player_id not in self.room_connections.get(room_id, set()):
            logger.debug(f"Player {player_id} not connected to room {room_id}, message {message.get('type')} dropped")
            return False

        try:
            await websocket.send_text(json.dumps(message, default=str))
            return True
        except Exception as e:
            self.failed_sends += 1
            logger.error(f"Error sending message to player {player_id}: {e}")
            return False

    async def broadcast_to_room(self, room_id: str, message: dict, exclude_player: Optional[str] = None) -> int:
        """广播消息到房间所有玩家，返回成功发送数"""
        sent_count = 0
        for player_id in list(self.room_connections.get(room_id, set())):
            if exclude_player and player_id == exclude_player:
                continue
            if await self.send_to_player(room_id, player_id, message):
                sent_count += 1

        logger.debug(f"Sent message type '{message.get('type', 'unknown')}' to {sent_count} players in room {room_id}")
        return sent_count

    def get_connection_count(self) -> int:
        """获取当前连接数"""
        return len(self.active_connections)

    def get_room_count(self) -> int:
        """获取当前房间数"""
        return len(self.room_connections)

    def get_room_players(self, room_id: str) -> List[str]:
        """获取房间内已连接的玩家列表"""
        return list(self.room_connections.get(room_id, set()))

    def is_player_connected(self, player_id: str) -> bool:
        return player_id in self.active_connections
