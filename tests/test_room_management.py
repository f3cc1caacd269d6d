"""
Room management tests
房间管理测试
"""

import pytest

from hatgame.core.config import settings
from hatgame.core.exceptions import (
    NotFoundError, PlayerNotFoundError, PreconditionError,
    ResourceUnavailableError, RoomNotFoundError,
)
from hatgame.schemas.game import RoomStatus
from hatgame.services.room import (
    ACTIVE_ROOMS_KEY, ROOM_CODE_ALPHABET, generate_room_code, room_code_key, room_key,
)

from conftest import add_word_pair, create_room_with_players, create_users


class TestRoomCodes:
    """测试房间码生成"""

    def test_code_length_and_alphabet(self):
        for _ in range(50):
            code = generate_room_code()
            assert len(code) == 6
            assert set(code) <= set(ROOM_CODE_ALPHABET)

    def test_ambiguous_characters_excluded(self):
        assert not set("01OI") & set(ROOM_CODE_ALPHABET)


class TestCreateAndJoin:
    """测试创建与加入房间"""

    @pytest.mark.asyncio
    async def test_create_room(self, db_manager, room_service, mock_redis):
        (host,) = await create_users(db_manager, 1)
        room = await room_service.create_room(host)

        assert room.status == RoomStatus.WAITING
        assert room.host_id == host
        assert room.max_players == 8
        assert [p.user_id for p in room.players] == [host]
        assert room.players[0].is_host

        assert room_key(room.id) in mock_redis.data
        assert mock_redis.data[room_code_key(room.code)] == room.id
        assert await mock_redis.zcard(ACTIVE_ROOMS_KEY) == 1

    @pytest.mark.asyncio
    async def test_unknown_user_cannot_create(self, room_service):
        with pytest.raises(NotFoundError) as exc_info:
            await room_service.create_room("nobody")
        assert exc_info.value.code == "user_not_found"

    @pytest.mark.asyncio
    async def test_active_room_cap(self, db_manager, room_service, monkeypatch):
        monkeypatch.setattr(settings, "MAX_ACTIVE_ROOMS", 1)
        first, second = await create_users(db_manager, 2)
        await room_service.create_room(first)

        with pytest.raises(ResourceUnavailableError) as exc_info:
            await room_service.create_room(second)
        assert exc_info.value.code == "room_limit_reached"

    @pytest.mark.asyncio
    async def test_join_is_case_insensitive(self, db_manager, room_service):
        host, guest = await create_users(db_manager, 2)
        room = await room_service.create_room(host)

        joined = await room_service.join_room(f"  {room.code.lower()} ", guest)

        assert joined.id == room.id
        assert [p.user_id for p in joined.players] == [host, guest]
        assert await room_service.get_room_id_by_code(room.code.lower()) == room.id

    @pytest.mark.asyncio
    async def test_join_twice_keeps_one_seat(self, db_manager, room_service):
        room, user_ids = await create_room_with_players(db_manager, room_service, 2)

        again = await room_service.join_room(room.code, user_ids[1])

        assert len(again.players) == 2
        assert len(again.active_players) == 2

    @pytest.mark.asyncio
    async def test_unknown_code(self, db_manager, room_service):
        (user,) = await create_users(db_manager, 1)
        with pytest.raises(RoomNotFoundError):
            await room_service.join_room("ZZZZZZ", user)

    @pytest.mark.asyncio
    async def test_room_full(self, db_manager, room_service):
        room, _ = await create_room_with_players(db_manager, room_service, 8)
        (late,) = await create_users(db_manager, 1)

        with pytest.raises(PreconditionError) as exc_info:
            await room_service.join_room(room.code, late)
        assert exc_info.value.code == "room_full"

    @pytest.mark.asyncio
    async def test_cannot_join_started_game(
        self, db_manager, room_service, word_pair_service, game_engine
    ):
        await add_word_pair(word_pair_service)
        room, user_ids = await create_room_with_players(db_manager, room_service, 4)
        await game_engine.start_game(room.id, user_ids[0])
        (late,) = await create_users(db_manager, 1)

        with pytest.raises(PreconditionError) as exc_info:
            await room_service.join_room(room.code, late)
        assert exc_info.value.code == "room_not_waiting"


class TestLeaveRoom:
    """测试离开房间"""

    @pytest.mark.asyncio
    async def test_host_leaving_passes_host_to_earliest_joiner(self, db_manager, room_service):
        room, user_ids = await create_room_with_players(db_manager, room_service, 3)

        state = await room_service.leave_room(room.id, user_ids[0])

        assert state.host_id == user_ids[1]
        assert state.get_player_by_user(user_ids[1]).is_host
        assert not state.get_player_by_user(user_ids[0]).is_active
        assert len(state.active_players) == 2

    @pytest.mark.asyncio
    async def test_guest_leaving_keeps_host(self, db_manager, room_service):
        room, user_ids = await create_room_with_players(db_manager, room_service, 3)

        state = await room_service.leave_room(room.id, user_ids[2])

        assert state.host_id == user_ids[0]
        assert len(state.active_players) == 2

    @pytest.mark.asyncio
    async def test_last_player_closes_room(self, db_manager, room_service, mock_redis):
        room, user_ids = await create_room_with_players(db_manager, room_service, 1)

        assert await room_service.leave_room(room.id, user_ids[0]) is None

        assert room_key(room.id) not in mock_redis.data
        assert room_code_key(room.code) not in mock_redis.data
        assert await mock_redis.zcard(ACTIVE_ROOMS_KEY) == 0

        closed = await room_service.get_room_state(room.id)
        assert closed.status == RoomStatus.FINISHED
        assert room_key(room.id) not in mock_redis.data

    @pytest.mark.asyncio
    async def test_non_member_cannot_leave(self, db_manager, room_service):
        room, _ = await create_room_with_players(db_manager, room_service, 2)
        (stranger,) = await create_users(db_manager, 1)

        with pytest.raises(PlayerNotFoundError):
            await room_service.leave_room(room.id, stranger)

    @pytest.mark.asyncio
    async def test_unknown_room(self, db_manager, room_service):
        (user,) = await create_users(db_manager, 1)
        with pytest.raises(RoomNotFoundError):
            await room_service.leave_room("missing", user)


class TestRoomCache:
    """测试房间缓存"""

    @pytest.mark.asyncio
    async def test_cache_miss_reloads_from_database(self, db_manager, room_service, mock_redis):
        room, user_ids = await create_room_with_players(db_manager, room_service, 3)
        await mock_redis.delete(room_key(room.id))

        state = await room_service.get_room_state(room.id)

        assert state.model_dump() == room.model_dump()
        assert room_key(room.id) in mock_redis.data
        assert mock_redis.ttls[room_key(room.id)] == 86400

    @pytest.mark.asyncio
    async def test_unknown_room(self, room_service):
        assert await room_service.get_room_state("missing") is None
        with pytest.raises(RoomNotFoundError):
            await room_service.require_room("missing")

    @pytest.mark.asyncio
    async def test_get_player(self, db_manager, room_service):
        room, _ = await create_room_with_players(db_manager, room_service, 2)
        player = room.players[1]

        assert (await room_service.get_player(room.id, player.id)) == player
        assert await room_service.get_player(room.id, "nobody") is None
