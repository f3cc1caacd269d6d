"""
User model
用户数据模型 - 由认证服务写入，游戏服务只读
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from hatgame.core.database import Base


class User(Base):
    """Account that can own player records in rooms"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True)
    display_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    avatar = Column(String(500), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, display_name={self.display_name})>"
