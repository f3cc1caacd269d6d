"""
Game API endpoints
游戏状态查询API端点 - 游戏操作通过 WebSocket 进行
"""

from typing import Any, Dict, List
from fastapi import APIRouter, Depends

from hatgame.api.deps import get_current_user_id, get_game_engine, get_game_recorder, get_room_service
from hatgame.core.exceptions import PlayerNotFoundError
from hatgame.services.game import GameEngine
from hatgame.services.game_recorder import GameRecorder
from hatgame.services.room import RoomService
from hatgame.schemas.game import GamePublicState, PlayerView

router = APIRouter(dependencies=[Depends(get_current_user_id)])


@router.get("/{room_id}", response_model=GamePublicState)
async def get_game_state(room_id: str, game_engine: GameEngine = Depends(get_game_engine)):
    """获取公开游戏状态（不含角色与词语）"""
    return await game_engine.get_game_state(room_id)


@router.get("/{room_id}/me", response_model=PlayerView)
async def get_my_view(
    room_id: str,
    user_id: str = Depends(get_current_user_id),
    room_service: RoomService = Depends(get_room_service),
    game_engine: GameEngine = Depends(get_game_engine),
):
    """获取自己的角色和词语"""
    room = await room_service.require_room(room_id)
    player = room.get_player_by_user(user_id)
    if not player:
        raise PlayerNotFoundError("You are not in this room", room_id=room_id)
    return await game_engine.get_player_view(room_id, player.id)


@router.get("/{room_id}/history", response_model=List[Dict[str, Any]])
async def get_match_history(
    room_id: str,
    room_service: RoomService = Depends(get_room_service),
    game_recorder: GameRecorder = Depends(get_game_recorder),
):
    """获取对局历史（回合、线索、投票）"""
    await room_service.require_room(room_id)
    return await game_recorder.get_match_history(room_id)
