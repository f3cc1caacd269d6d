"""
Pytest configuration and fixtures
测试配置和固件
"""

import uuid
import random
import fnmatch
import pytest
from typing import Any, Callable, Dict, List, Optional, Tuple

from hatgame.core.database import DatabaseManager
from hatgame.core.redis_client import RedisManager
from hatgame.models.user import User
from hatgame.schemas.game import GamePhase, GameState, PlayerRole
from hatgame.schemas.room import RoomState
from hatgame.schemas.word_pair import WordPairCreate, WordPairResponse
from hatgame.services.game import GameEngine
from hatgame.services.game_recorder import GameRecorder
from hatgame.services.room import RoomService
from hatgame.services.session_store import RedisGameSessionStore
from hatgame.services.word_pair import WordPairService

# Test database URL (in-memory SQLite for fast testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class MockRedis:
    """Mock Redis client for testing"""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.zsets: Dict[str, Dict[str, float]] = {}

    async def ping(self):
        return True

    async def get(self, key: str):
        return self.data.get(key)

    async def setex(self, key: str, expire: int, value: str):
        self.data[key] = value
        self.ttls[key] = expire
        return True

    async def set(self, key: str, value: str, ex: int = None):
        self.data[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            if self.zsets.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    async def zrem(self, key: str, *members: str) -> int:
        zset = self.zsets.get(key, {})
        return sum(1 for member in members if zset.pop(member, None) is not None)

    async def zcard(self, key: str) -> int:
        return len(self.zsets.get(key, {}))

    def keys_matching(self, pattern: str) -> List[str]:
        return [key for key in self.data if fnmatch.fnmatch(key, pattern)]

    async def aclose(self):
        pass

    def clear(self):
        """Clear all data - useful for testing"""
        self.data.clear()
        self.ttls.clear()
        self.zsets.clear()


class RecordingBroadcaster:
    """Collects every event the engine emits"""

    def __init__(self):
        self.room_messages: List[Tuple[str, Dict[str, Any]]] = []
        self.private_messages: List[Tuple[str, str, Dict[str, Any]]] = []

    async def broadcast_to_room(self, room_id: str, message: Dict[str, Any]) -> int:
        self.room_messages.append((room_id, message))
        return 1

    async def send_to_player(self, room_id: str, player_id: str, message: Dict[str, Any]) -> bool:
        self.private_messages.append((room_id, player_id, message))
        return True

    def room_types(self) -> List[str]:
        return [message["type"] for _, message in self.room_messages]

    def private_for(self, player_id: str, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            message for _, pid, message in self.private_messages
            if pid == player_id and (event_type is None or message["type"] == event_type)
        ]

    def clear(self):
        self.room_messages.clear()
        self.private_messages.clear()


@pytest.fixture
async def db_manager():
    """Fresh in-memory database per test"""
    manager = DatabaseManager(TEST_DATABASE_URL, echo=False)
    await manager.initialize(create_tables=True)
    yield manager
    await manager.close()


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def redis_manager(mock_redis):
    manager = RedisManager("redis://localhost:6379/15")
    manager.client = mock_redis
    return manager


@pytest.fixture
def session_store(redis_manager, db_manager):
    return RedisGameSessionStore(redis_manager, db_manager)


@pytest.fixture
def room_service(db_manager, redis_manager, session_store):
    return RoomService(db_manager, redis_manager, session_store)


@pytest.fixture
def word_pair_service(db_manager):
    return WordPairService(db_manager, rng=random.Random(7))


@pytest.fixture
def recorder(db_manager):
    return GameRecorder(db_manager)


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def game_engine(room_service, session_store, word_pair_service, broadcaster, recorder):
    return GameEngine(
        room_service=room_service,
        session_store=session_store,
        word_pair_service=word_pair_service,
        broadcaster=broadcaster,
        recorder=recorder,
        role_rng=random.Random(1),
        turn_rng=random.Random(2),
    )


async def create_users(db_manager: DatabaseManager, count: int) -> List[str]:
    """Create sample users for testing"""
    user_ids = []
    async with db_manager.get_session() as session:
        for i in range(count):
            user_id = str(uuid.uuid4())
            session.add(User(id=user_id, display_name=f"player_{i}", email=f"player{i}_{user_id[:8]}@example.com"))
            user_ids.append(user_id)
    return user_ids


async def create_room_with_players(
    db_manager: DatabaseManager, room_service: RoomService, count: int
) -> Tuple[RoomState, List[str]]:
    """Host plus ``count - 1`` joined players; returns the room and user ids in join order"""
    user_ids = await create_users(db_manager, count)
    room = await room_service.create_room(user_ids[0])
    for user_id in user_ids[1:]:
        room = await room_service.join_room(room.code, user_id)
    return room, user_ids


async def add_word_pair(
    word_pair_service: WordPairService, word_a: str = "Mèo", word_b: str = "Chó", category: str = "động vật"
) -> WordPairResponse:
    return await word_pair_service.create_word_pair(
        WordPairCreate(word_a=word_a, word_b=word_b, category_name=category)
    )


async def start_room(db_manager, room_service, word_pair_service, game_engine, count: int):
    """Seed a word pair, fill a room and start the game"""
    await add_word_pair(word_pair_service)
    room, user_ids = await create_room_with_players(db_manager, room_service, count)
    started = await game_engine.start_game(room.id, user_ids[0])
    room = await room_service.get_room_state(room.id)
    return room, started


def ids_with_role(room: RoomState, role: PlayerRole) -> List[str]:
    return [p.id for p in room.players if p.role == role]


async def give_all_clues(game_engine: GameEngine, session_store: RedisGameSessionStore, room_id: str) -> GameState:
    state = await session_store.get(room_id)
    while state.phase == GamePhase.HINTING:
        player_id = state.current_player_id
        await game_engine.submit_clue(room_id, player_id, f"clue from {player_id[:6]}")
        state = await session_store.get(room_id)
    return state


async def vote_all(game_engine: GameEngine, state: GameState, choose: Callable[[str], str]) -> None:
    for voter_id in state.active_player_ids:
        await game_engine.submit_vote(state.room_id, voter_id, choose(voter_id))
