"""
Room Pydantic schemas
房间数据验证和序列化模型
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from hatgame.schemas.game import PlayerRole, RoomStatus


class RoomPlayer(BaseModel):
    """房间内的玩家"""
    id: str  # Player record id
    user_id: str
    display_name: str
    avatar: Optional[str] = None
    is_active: bool = True
    is_host: bool = False
    role: Optional[PlayerRole] = None


class RoomState(BaseModel):
    """Cached room snapshot (membership, host, status)"""
    id: str
    code: str
    host_id: str
    status: RoomStatus
    max_players: int
    winner: Optional[PlayerRole] = None
    players: List[RoomPlayer] = Field(default_factory=list)

    @property
    def active_players(self) -> List[RoomPlayer]:
        return [p for p in self.players if p.is_active]

    def get_player(self, player_id: str) -> Optional[RoomPlayer]:
        return next((p for p in self.players if p.id == player_id), None)

    def get_player_by_user(self, user_id: str) -> Optional[RoomPlayer]:
        return next((p for p in self.players if p.user_id == user_id), None)

    def public(self) -> dict:
        """Room snapshot without hidden roles"""
        return self.model_dump(mode="json", exclude={"players": {"__all__": {"role"}}})


class RoomJoinRequest(BaseModel):
    """加入房间请求"""
    code: str = Field(..., min_length=1, max_length=12)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError("Room code must be alphanumeric")
        return v


class RoomResponse(BaseModel):
    """房间响应"""
    message: str = ""
    room: dict
