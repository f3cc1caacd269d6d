"""
API v1 router
API v1 路由配置
"""

from fastapi import APIRouter

# Import route modules
from hatgame.api.v1.endpoints import rooms, words, games, websocket, health
from hatgame.schemas.common import ErrorResponse

# 游戏错误统一返回 ErrorResponse 结构
error_responses = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(rooms.router, prefix="/rooms", tags=["rooms"], responses=error_responses)
api_router.include_router(words.router, prefix="/words", tags=["words"], responses=error_responses)
api_router.include_router(games.router, prefix="/games", tags=["games"], responses=error_responses)
api_router.include_router(websocket.router, prefix="/ws", tags=["websocket"])
