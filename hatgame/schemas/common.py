"""
Common Pydantic schemas
通用数据验证和序列化模型
"""

from pydantic import BaseModel, Field
from typing import Optional, Any, Dict
from datetime import datetime


class MessageResponse(BaseModel):
    """简单消息响应"""
    message: str


class ErrorResponse(BaseModel):
    """错误响应模型"""
    code: str
    message: str
    params: Dict[str, Any] = Field(default_factory=dict)
    retryable: bool = False


class WebSocketMessage(BaseModel):
    """WebSocket消息模型"""
    type: str = Field(..., description="消息类型")
    data: Optional[Dict[str, Any]] = Field(None, description="消息数据")
    timestamp: datetime = Field(default_factory=datetime.now)
