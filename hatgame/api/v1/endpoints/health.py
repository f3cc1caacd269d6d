"""
Health check endpoints
健康检查端点
"""

from fastapi import APIRouter, Request

from hatgame.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint
    基础健康检查端点
    """
    return {
        "status": "healthy",
        "service": "hat-game",
        "version": "1.0.0"
    }


@router.get("/health/detailed")
async def detailed_health_check(request: Request):
    """
    Backing store reachability and connection counts
    数据库、Redis 与 WebSocket 连接状态
    """
    state = request.app.state
    database_ok = await state.db_manager.health_check()
    redis_ok = await state.redis_manager.health_check()

    return {
        "status": "healthy" if database_ok and redis_ok else "degraded",
        "environment": settings.ENVIRONMENT,
        "database": "ok" if database_ok else "unavailable",
        "redis": "ok" if redis_ok else "unavailable",
        "websocket": {
            "connections": state.connection_manager.get_connection_count(),
            "rooms": state.connection_manager.get_room_count(),
            "failed_sends": state.connection_manager.failed_sends,
        },
    }
