"""
Room and player models
房间与玩家数据模型
"""

from sqlalchemy import Column, String, Integer, DateTime, Boolean, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from hatgame.core.database import Base

# 导入统一的enum定义
from hatgame.schemas.game import PlayerRole, RoomStatus


class Room(Base):
    """Game lobby identified by a join code"""

    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, index=True)
    code = Column(String(12), unique=True, index=True, nullable=False)
    host_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    max_players = Column(Integer, default=8, nullable=False)
    status = Column(Enum(RoomStatus, values_callable=lambda obj: [e.value for e in obj]),
                    default=RoomStatus.WAITING, nullable=False)
    winner = Column(Enum(PlayerRole, values_callable=lambda obj: [e.value for e in obj]),
                    nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    host = relationship("User", foreign_keys=[host_id])
    players = relationship("Player", back_populates="room", order_by="Player.joined_at")

    def __repr__(self):
        return f"<Room(id={self.id}, code={self.code}, status={self.status})>"


class Player(Base):
    """A user's seat in one room; reused when the user re-joins"""

    __tablename__ = "players"
    __table_args__ = (UniqueConstraint("user_id", "room_id", name="uq_player_user_room"),)

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    role = Column(Enum(PlayerRole, values_callable=lambda obj: [e.value for e in obj]),
                  nullable=True)

    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    room = relationship("Room", back_populates="players")

    def __repr__(self):
        return f"<Player(id={self.id}, user_id={self.user_id}, room_id={self.room_id})>"
