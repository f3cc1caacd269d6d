"""
WebSocket endpoints
WebSocket连接端点 - 游戏操作入口
"""

import json
import logging
from typing import Any, Dict
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from hatgame.api.deps import resolve_user_id
from hatgame.core.exceptions import GameError
from hatgame.schemas.common import WebSocketMessage
from hatgame.schemas.game import ClueCreate, VoteCreate, GuessCreate
from hatgame.services import game_events
from hatgame.services.game import GameEngine

logger = logging.getLogger(__name__)
router = APIRouter()


async def handle_game_message(
    game_engine: GameEngine, room_id: str, user_id: str, player_id: str, message: Dict[str, Any]
) -> None:
    """Dispatch one client message to the game engine"""
    message_type = message["type"]
    data = message.get("data") or {}

    if message_type == game_events.START_GAME:
        await game_engine.start_game(room_id, user_id, data.get("categoryId"))

    elif message_type == game_events.SUBMIT_CLUE:
        clue = ClueCreate(content=data.get("content") or "")
        await game_engine.submit_clue(room_id, player_id, clue.content)

    elif message_type == game_events.SUBMIT_VOTE:
        vote = VoteCreate(target_player_id=data.get("targetPlayerId") or "")
        result = await game_engine.submit_vote(room_id, player_id, vote.target_player_id)
        if result.all_voted:
            await game_engine.resolve_votes(room_id)

    elif message_type == game_events.RESOLVE_VOTES:
        await game_engine.resolve_votes(room_id, require_complete=True)

    elif message_type == game_events.SUBMIT_GUESS:
        guess = GuessCreate(guess=data.get("guess") or "")
        await game_engine.submit_white_hat_guess(room_id, player_id, guess.guess)

    else:
        raise GameError(f"Unknown message type: {message_type}", code="unknown_message_type")


@router.websocket("/{room_id}")
async def game_websocket(websocket: WebSocket, room_id: str):
    """
    房间WebSocket连接端点

    The client authenticates with ``?token=`` and must already have joined
    the room over HTTP.
    """
    state = websocket.app.state
    connection_manager = state.connection_manager

    token = websocket.query_params.get("token")
    user_id = await resolve_user_id(state.db_manager, token) if token else None
    if not user_id:
        logger.warning(f"WebSocket auth failed for room {room_id}")
        await websocket.close(code=4001, reason="Authentication required")
        return

    room = await state.room_service.get_room_state(room_id)
    player = room.get_player_by_user(user_id) if room else None
    if not player:
        await websocket.close(code=4004, reason="Join the room before connecting")
        return

    if not await connection_manager.connect(room_id, player.id, websocket):
        await websocket.close(code=4002, reason="Connection failed")
        return

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = WebSocketMessage.model_validate(json.loads(raw))
            except json.JSONDecodeError:
                await connection_manager.send_to_player(
                    room_id, player.id, game_events.error("invalid_json", "Invalid JSON format")
                )
                continue
            except ValidationError:
                await connection_manager.send_to_player(
                    room_id, player.id, game_events.error("invalid_message", "Invalid message format")
                )
                continue

            try:
                await handle_game_message(
                    state.game_engine, room_id, user_id, player.id, message.model_dump(exclude={"timestamp"})
                )
            except GameError as e:
                logger.info(f"Rejected {message.type} from player {player.id}: {e.code}")
                await connection_manager.send_to_player(room_id, player.id, game_events.error(e.code, e.message))
            except ValidationError as e:
                await connection_manager.send_to_player(
                    room_id, player.id, game_events.error("invalid_payload", e.errors()[0]["msg"])
                )

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for player {player.id} in room {room_id}")
    finally:
        # 只清理连接，离开房间需通过 API 调用
        connection_manager.forget(player.id, websocket)
