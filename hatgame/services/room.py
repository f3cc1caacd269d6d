"""
Room management service
房间管理服务 - 数据库为准，Redis 缓存房间快照与房间码映射
"""

import uuid
import time
import secrets
import logging
from typing import Dict, List, Optional
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hatgame.core.config import settings
from hatgame.core.database import DatabaseManager
from hatgame.core.redis_client import RedisManager
from hatgame.core.exceptions import (
    NotFoundError, PreconditionError, PlayerNotFoundError,
    ResourceUnavailableError, RoomNotFoundError,
)
from hatgame.models.room import Room, Player
from hatgame.models.user import User
from hatgame.schemas.game import PlayerRole, RoomStatus
from hatgame.schemas.room import RoomPlayer, RoomState

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ACTIVE_ROOMS_KEY = "active_rooms"  # sorted set: room_id -> created timestamp


def room_key(room_id: str) -> str:
    return f"room:{room_id}"


def room_code_key(code: str) -> str:
    return f"room_code:{code.upper()}"


def generate_room_code(length: Optional[int] = None) -> str:
    """Random join code without easily confused characters (0/O, 1/I)"""
    length = length or settings.ROOM_CODE_LENGTH
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


class RoomService:
    """
    Room registry: membership, host and lifecycle status.

    Every write goes to the database first and then refreshes the cached
    snapshot, so the cache never holds state the database does not.
    """

    def __init__(self, db_manager: DatabaseManager, redis_manager: RedisManager, session_store=None):
        self.db_manager = db_manager
        self.redis_manager = redis_manager
        self.session_store = session_store
        self.ttl = settings.ROOM_STATE_TTL_SECONDS

    # ------------------------------------------------------------------
    # Lobby operations
    # ------------------------------------------------------------------

    async def create_room(self, user_id: str) -> RoomState:
        """创建房间，创建者成为房主"""
        active_count = await self.get_active_room_count()
        if active_count >= settings.MAX_ACTIVE_ROOMS:
            raise ResourceUnavailableError(
                "Too many active rooms, please try again later",
                code="room_limit_reached",
                limit=settings.MAX_ACTIVE_ROOMS,
            )

        async with self.db_manager.get_session() as session:
            user = await session.get(User, user_id)
            if not user:
                raise NotFoundError("User does not exist", code="user_not_found", user_id=user_id)

            code = await self._unique_code(session)
            room = Room(
                id=str(uuid.uuid4()),
                code=code,
                host_id=user_id,
                max_players=settings.MAX_PLAYERS,
                status=RoomStatus.WAITING,
            )
            session.add(room)
            session.add(Player(
                id=str(uuid.uuid4()), user_id=user_id, room_id=room.id,
                is_active=True, joined_at=datetime.now(timezone.utc),
            ))
            await session.flush()

            state = await self._load_room(session, room.id)

        await self._cache_room(state)
        await self.redis_manager.execute_with_retry(
            lambda client: client.setex(room_code_key(state.code), self.ttl, state.id)
        )
        await self.redis_manager.execute_with_retry(
            lambda client: client.zadd(ACTIVE_ROOMS_KEY, {state.id: time.time()})
        )

        logger.info(f"Room {state.code} ({state.id}) created by {user_id}")
        return state

    async def join_room(self, code: str, user_id: str) -> RoomState:
        """
        加入房间（按房间码，大小写不敏感）

        Joining twice is harmless: the existing player record is reused and
        reactivated.
        """
        code = code.strip().upper()

        async with self.db_manager.get_session() as session:
            room = (await session.execute(select(Room).where(Room.code == code))).scalar_one_or_none()
            if not room:
                raise RoomNotFoundError(room_code=code)
            if room.status != RoomStatus.WAITING:
                raise PreconditionError("The game has already started", code="room_not_waiting")

            user = await session.get(User, user_id)
            if not user:
                raise NotFoundError("User does not exist", code="user_not_found", user_id=user_id)

            existing = (await session.execute(
                select(Player).where(Player.room_id == room.id, Player.user_id == user_id)
            )).scalar_one_or_none()

            if not (existing and existing.is_active):
                active_players = (await session.execute(
                    select(Player).where(Player.room_id == room.id, Player.is_active.is_(True))
                )).scalars().all()
                if len(active_players) >= room.max_players:
                    raise PreconditionError("The room is full", code="room_full", max_players=room.max_players)

            if existing:
                existing.is_active = True
            else:
                session.add(Player(
                    id=str(uuid.uuid4()), user_id=user_id, room_id=room.id,
                    is_active=True, joined_at=datetime.now(timezone.utc),
                ))
            await session.flush()

            state = await self._load_room(session, room.id)

        await self._cache_room(state)
        logger.info(f"User {user_id} joined room {state.code}")
        return state

    async def leave_room(self, room_id: str, user_id: str) -> Optional[RoomState]:
        """
        离开房间

        A departing host hands the room to the earliest-joined active player;
        with nobody left the room is closed and None is returned.
        """
        async with self.db_manager.get_session() as session:
            room = await session.get(Room, room_id)
            if not room:
                raise RoomNotFoundError(room_id=room_id)

            player = (await session.execute(
                select(Player).where(Player.room_id == room_id, Player.user_id == user_id)
            )).scalar_one_or_none()
            if not player:
                raise PlayerNotFoundError("You are not in this room", room_id=room_id)

            player.is_active = False
            closed = False

            if room.host_id == user_id and room.status != RoomStatus.FINISHED:
                successor = (await session.execute(
                    select(Player)
                    .where(Player.room_id == room_id, Player.is_active.is_(True), Player.user_id != user_id)
                    .order_by(Player.joined_at, Player.id)
                    .limit(1)
                )).scalar_one_or_none()

                if successor:
                    room.host_id = successor.user_id
                    logger.info(f"Host of room {room.code} passed to {successor.user_id}")
                else:
                    room.status = RoomStatus.FINISHED
                    room.finished_at = datetime.now(timezone.utc)
                    closed = True

            await session.flush()
            state = await self._load_room(session, room_id)

        if closed:
            await self._drop_room_cache(state.id, state.code)
            if self.session_store is not None:
                await self.session_store.delete(room_id)
            logger.info(f"Room {state.code} closed: last player left")
            return None

        await self._cache_room(state)
        return state

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_room_state(self, room_id: str) -> Optional[RoomState]:
        """Cached snapshot, rehydrated from the database on a cache miss"""
        raw = await self.redis_manager.execute_with_retry(lambda client: client.get(room_key(room_id)))
        if raw:
            return RoomState.model_validate_json(raw)

        async with self.db_manager.get_session() as session:
            state = await self._load_room(session, room_id)
        if not state:
            return None

        if state.status != RoomStatus.FINISHED:
            await self._cache_room(state)
        return state

    async def require_room(self, room_id: str) -> RoomState:
        state = await self.get_room_state(room_id)
        if not state:
            raise RoomNotFoundError(room_id=room_id)
        return state

    async def get_player(self, room_id: str, player_id: str) -> Optional[RoomPlayer]:
        state = await self.get_room_state(room_id)
        return state.get_player(player_id) if state else None

    async def get_room_id_by_code(self, code: str) -> Optional[str]:
        room_id = await self.redis_manager.execute_with_retry(lambda client: client.get(room_code_key(code)))
        if room_id:
            return room_id

        async with self.db_manager.get_session() as session:
            return (await session.execute(
                select(Room.id).where(Room.code == code.strip().upper())
            )).scalar_one_or_none()

    async def get_active_room_count(self) -> int:
        return await self.redis_manager.execute_with_retry(lambda client: client.zcard(ACTIVE_ROOMS_KEY))

    # ------------------------------------------------------------------
    # Game lifecycle hooks (called by the game engine)
    # ------------------------------------------------------------------

    async def begin_game(self, room_id: str, assignments: Dict[str, PlayerRole]) -> RoomState:
        """Persist roles and flip the room to IN_PROGRESS in one transaction"""
        async with self.db_manager.get_session() as session:
            room = await session.get(Room, room_id)
            if not room:
                raise RoomNotFoundError(room_id=room_id)
            if room.status != RoomStatus.WAITING:
                raise PreconditionError("The game has already started", code="room_not_waiting")

            players = (await session.execute(
                select(Player).where(Player.room_id == room_id)
            )).scalars().all()
            for player in players:
                player.role = assignments.get(player.id)

            room.status = RoomStatus.IN_PROGRESS
            await session.flush()
            state = await self._load_room(session, room_id)

        await self._cache_room(state)
        return state

    async def cancel_game(self, room_id: str) -> RoomState:
        """Undo begin_game: clear roles and put the room back to WAITING"""
        async with self.db_manager.get_session() as session:
            room = await session.get(Room, room_id)
            if not room:
                raise RoomNotFoundError(room_id=room_id)

            players = (await session.execute(
                select(Player).where(Player.room_id == room_id)
            )).scalars().all()
            for player in players:
                player.role = None

            room.status = RoomStatus.WAITING
            await session.flush()
            state = await self._load_room(session, room_id)

        await self._cache_room(state)
        logger.warning(f"Game start in room {state.code} rolled back")
        return state

    async def mark_player_inactive(self, room_id: str, player_id: str) -> RoomState:
        async with self.db_manager.get_session() as session:
            player = await session.get(Player, player_id)
            if not player or player.room_id != room_id:
                raise PlayerNotFoundError(room_id=room_id, player_id=player_id)
            player.is_active = False
            await session.flush()
            state = await self._load_room(session, room_id)

        await self._cache_room(state)
        return state

    async def finish_room(self, room_id: str, winner: Optional[PlayerRole]) -> None:
        async with self.db_manager.get_session() as session:
            room = await session.get(Room, room_id)
            if not room:
                raise RoomNotFoundError(room_id=room_id)
            room.status = RoomStatus.FINISHED
            room.winner = winner
            room.finished_at = datetime.now(timezone.utc)
            code = room.code

        await self._drop_room_cache(room_id, code)
        logger.info(f"Room {code} finished, winner={winner.value if winner else None}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _unique_code(self, session: AsyncSession) -> str:
        for _ in range(10):
            code = generate_room_code()
            taken = (await session.execute(select(Room.id).where(Room.code == code))).scalar_one_or_none()
            if not taken:
                return code
        raise ResourceUnavailableError("Could not allocate a room code", code="room_code_exhausted")

    async def _load_room(self, session: AsyncSession, room_id: str) -> Optional[RoomState]:
        room = await session.get(Room, room_id)
        if not room:
            return None

        rows = (await session.execute(
            select(Player, User)
            .join(User, Player.user_id == User.id)
            .where(Player.room_id == room_id)
            .order_by(Player.joined_at, Player.id)
        )).all()

        players: List[RoomPlayer] = [
            RoomPlayer(
                id=player.id,
                user_id=player.user_id,
                display_name=user.display_name,
                avatar=user.avatar,
                is_active=player.is_active,
                is_host=player.user_id == room.host_id,
                role=player.role,
            )
            for player, user in rows
        ]

        return RoomState(
            id=room.id,
            code=room.code,
            host_id=room.host_id,
            status=room.status,
            max_players=room.max_players,
            winner=room.winner,
            players=players,
        )

    async def _cache_room(self, state: RoomState) -> None:
        payload = state.model_dump_json()
        await self.redis_manager.execute_with_retry(
            lambda client: client.setex(room_key(state.id), self.ttl, payload)
        )

    async def _drop_room_cache(self, room_id: str, code: str) -> None:
        await self.redis_manager.execute_with_retry(lambda client: client.delete(room_key(room_id)))
        await self.redis_manager.execute_with_retry(lambda client: client.delete(room_code_key(code)))
        await self.redis_manager.execute_with_retry(lambda client: client.zrem(ACTIVE_ROOMS_KEY, room_id))
