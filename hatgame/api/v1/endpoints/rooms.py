"""
Room management API endpoints
房间管理API端点
"""

from fastapi import APIRouter, Depends, status

from hatgame.api.deps import (
    get_current_user_id, get_room_service, get_game_engine, get_connection_manager
)
from hatgame.services import game_events
from hatgame.services.game import GameEngine
from hatgame.services.room import RoomService
from hatgame.schemas.room import RoomJoinRequest, RoomResponse
from hatgame.schemas.common import MessageResponse
from hatgame.websocket.connection_manager import ConnectionManager

router = APIRouter()


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    user_id: str = Depends(get_current_user_id),
    room_service: RoomService = Depends(get_room_service),
):
    """创建新房间，创建者成为房主"""
    room = await room_service.create_room(user_id)
    return RoomResponse(message="Room created", room=room.public())


@router.post("/join", response_model=RoomResponse)
async def join_room(
    join_request: RoomJoinRequest,
    user_id: str = Depends(get_current_user_id),
    room_service: RoomService = Depends(get_room_service),
    connection_manager: ConnectionManager = Depends(get_connection_manager),
):
    """
    通过房间码加入房间

    - **code**: 6位房间码（大小写不敏感）
    """
    room = await room_service.join_room(join_request.code, user_id)
    await connection_manager.broadcast_to_room(
        room.id, game_events.event(game_events.ROOM_UPDATED, {"room": room.public()})
    )
    return RoomResponse(message="Joined room", room=room.public())


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: str,
    user_id: str = Depends(get_current_user_id),
    room_service: RoomService = Depends(get_room_service),
):
    """获取房间信息（不含角色）"""
    room = await room_service.require_room(room_id)
    return RoomResponse(room=room.public())


@router.delete("/{room_id}/leave", response_model=MessageResponse)
async def leave_room(
    room_id: str,
    user_id: str = Depends(get_current_user_id),
    game_engine: GameEngine = Depends(get_game_engine),
    connection_manager: ConnectionManager = Depends(get_connection_manager),
):
    """离开房间；房主离开时移交房主，无人剩余则关闭房间，游戏中离开会同步回合状态"""
    room = await game_engine.leave_room(room_id, user_id)
    if room is None:
        return MessageResponse(message="Room closed")

    await connection_manager.broadcast_to_room(
        room_id, game_events.event(game_events.ROOM_UPDATED, {"room": room.public()})
    )
    return MessageResponse(message="Left room")
