"""
Game session store
游戏会话存储 - Redis 保存进行中的对局状态，缓存缺失时从对局历史重建
"""

import logging
from typing import Optional

from sqlalchemy import select

from hatgame.core.config import settings
from hatgame.core.database import DatabaseManager
from hatgame.core.redis_client import RedisManager
from hatgame.models.match import Round, Clue, Vote
from hatgame.models.room import Room, Player
from hatgame.models.user import User
from hatgame.schemas.game import ClueRecord, GamePhase, GameState, RoomStatus

logger = logging.getLogger(__name__)


def game_key(room_id: str) -> str:
    return f"game:{room_id}"


class RedisGameSessionStore:
    """
    Full-replace session store keyed by room id.

    Entries expire after ``ROOM_STATE_TTL_SECONDS`` so abandoned games age
    out without explicit cleanup.
    """

    def __init__(
        self,
        redis_manager: RedisManager,
        db_manager: Optional[DatabaseManager] = None,
        ttl: Optional[int] = None,
    ):
        self.redis_manager = redis_manager
        self.db_manager = db_manager
        self.ttl = ttl or settings.ROOM_STATE_TTL_SECONDS

    async def get(self, room_id: str) -> Optional[GameState]:
        raw = await self.redis_manager.execute_with_retry(lambda client: client.get(game_key(room_id)))
        if raw:
            return GameState.model_validate_json(raw)

        if self.db_manager is None:
            return None
        return await self.rehydrate(room_id)

    async def put(self, state: GameState) -> None:
        payload = state.model_dump_json()
        await self.redis_manager.execute_with_retry(
            lambda client: client.setex(game_key(state.room_id), self.ttl, payload)
        )

    async def delete(self, room_id: str) -> None:
        await self.redis_manager.execute_with_retry(lambda client: client.delete(game_key(room_id)))

    async def rehydrate(self, room_id: str) -> Optional[GameState]:
        """
        Rebuild a session from match history after a cold restart.

        Only IN_PROGRESS rooms whose latest round is still open can be
        rebuilt; the rebuilt state is written back to Redis.
        """
        async with self.db_manager.get_session() as session:
            room = await session.get(Room, room_id)
            if not room or room.status != RoomStatus.IN_PROGRESS:
                return None

            rounds = (await session.execute(
                select(Round).where(Round.room_id == room_id).order_by(Round.round_number)
            )).scalars().all()
            if not rounds:
                logger.warning(f"Room {room_id} is in progress but has no recorded rounds")
                return None

            current = rounds[-1]
            if current.phase == GamePhase.RESULT:
                logger.warning(f"Latest round of room {room_id} is already closed, cannot rehydrate")
                return None

            eliminated = [r.eliminated_player_id for r in rounds if r.eliminated_player_id]

            clue_rows = (await session.execute(
                select(Clue, User.display_name)
                .join(Player, Clue.player_id == Player.id)
                .join(User, Player.user_id == User.id)
                .where(Clue.round_id == current.id)
                .order_by(Clue.position)
            )).all()
            votes = (await session.execute(
                select(Vote).where(Vote.round_id == current.id)
            )).scalars().all()

            clues = [
                ClueRecord(
                    player_id=clue.player_id,
                    display_name=display_name,
                    content=clue.content,
                    created_at=clue.created_at,
                )
                for clue, display_name in clue_rows
            ]

            turn_order = list(current.turn_order or [])
            inactive = set((await session.execute(
                select(Player.id).where(Player.room_id == room_id, Player.is_active.is_(False))
            )).scalars().all())
            departed = [pid for pid in turn_order if pid in inactive and pid not in eliminated]
            out = set(eliminated) | set(departed)

            given = {c.player_id for c in clues}
            cursor = next(
                (i for i, pid in enumerate(turn_order) if pid not in out and pid not in given),
                len(turn_order),
            )

            state = GameState(
                room_id=room_id,
                round_number=current.round_number,
                phase=current.phase,
                turn_order=turn_order,
                current_turn_index=cursor,
                clues=clues,
                votes={v.voter_id: v.target_id for v in votes if v.voter_id not in departed},
                eliminated_players=eliminated,
                departed_players=departed,
                word_pair_id=current.word_pair_id,
                started_at=rounds[0].started_at,
            )

        await self.put(state)
        logger.info(f"Game session for room {room_id} rehydrated at round {state.round_number}")
        return state
