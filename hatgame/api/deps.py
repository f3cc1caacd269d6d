"""
API dependencies
API依赖 - 当前用户解析与服务获取
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from hatgame.core.database import DatabaseManager
from hatgame.core.security import decode_access_token
from hatgame.models.user import User
from hatgame.services.game import GameEngine
from hatgame.services.game_recorder import GameRecorder
from hatgame.services.room import RoomService
from hatgame.services.word_pair import WordPairService
from hatgame.websocket.connection_manager import ConnectionManager

# auto_error=False 使得 HTTPBearer 在没有 token 时不会自动返回 403
# 我们手动处理，统一返回 401 以保持一致性
security = HTTPBearer(auto_error=False)


def get_db_manager(request: Request) -> DatabaseManager:
    return request.app.state.db_manager


def get_room_service(request: Request) -> RoomService:
    return request.app.state.room_service


def get_word_pair_service(request: Request) -> WordPairService:
    return request.app.state.word_pair_service


def get_game_engine(request: Request) -> GameEngine:
    return request.app.state.game_engine


def get_game_recorder(request: Request) -> GameRecorder:
    return request.app.state.game_recorder


def get_connection_manager(request: Request) -> ConnectionManager:
    return request.app.state.connection_manager


async def resolve_user_id(db_manager: DatabaseManager, token: str) -> Optional[str]:
    """User id from a token, provided the user still exists"""
    user_id = decode_access_token(token)
    if not user_id:
        return None

    async with db_manager.get_session() as session:
        user = await session.get(User, user_id)
    return user.id if user else None


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db_manager: DatabaseManager = Depends(get_db_manager),
) -> str:
    """Dependency returning the authenticated user's id"""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = await resolve_user_id(db_manager, credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id
