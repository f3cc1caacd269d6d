"""
WebSocket message dispatch tests
WebSocket 消息分发测试
"""

import pytest
from pydantic import ValidationError

from hatgame.api.v1.endpoints.websocket import handle_game_message
from hatgame.core.exceptions import GameError, NotHostError, PreconditionError, StoreUnavailableError
from hatgame.schemas.game import GamePhase, PlayerRole, RoomStatus
from hatgame.services import game_events

from conftest import add_word_pair, create_room_with_players, give_all_clues, ids_with_role, start_room


class TestMessageDispatch:
    """测试客户端消息分发到游戏引擎"""

    @pytest.mark.asyncio
    async def test_start_game_message(self, db_manager, room_service, word_pair_service, game_engine):
        await add_word_pair(word_pair_service)
        room, user_ids = await create_room_with_players(db_manager, room_service, 4)
        host_player = room.get_player_by_user(user_ids[0])

        await handle_game_message(
            game_engine, room.id, user_ids[0], host_player.id, {"type": game_events.START_GAME, "data": {}}
        )

        assert (await room_service.get_room_state(room.id)).status == RoomStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_start_game_by_guest(self, db_manager, room_service, word_pair_service, game_engine):
        await add_word_pair(word_pair_service)
        room, user_ids = await create_room_with_players(db_manager, room_service, 4)
        guest = room.get_player_by_user(user_ids[1])

        with pytest.raises(NotHostError):
            await handle_game_message(
                game_engine, room.id, user_ids[1], guest.id, {"type": game_events.START_GAME}
            )

    @pytest.mark.asyncio
    async def test_clue_message(
        self, db_manager, room_service, word_pair_service, game_engine, session_store
    ):
        room, started = await start_room(db_manager, room_service, word_pair_service, game_engine, 4)
        player = room.get_player(started.first_player_id)

        await handle_game_message(
            game_engine, room.id, player.user_id, player.id,
            {"type": game_events.SUBMIT_CLUE, "data": {"content": " furry "}},
        )

        state = await session_store.get(room.id)
        assert [c.content for c in state.clues] == ["furry"]

    @pytest.mark.asyncio
    async def test_blank_clue_fails_validation(
        self, db_manager, room_service, word_pair_service, game_engine
    ):
        room, started = await start_room(db_manager, room_service, word_pair_service, game_engine, 4)
        player = room.get_player(started.first_player_id)

        with pytest.raises(ValidationError):
            await handle_game_message(
                game_engine, room.id, player.user_id, player.id,
                {"type": game_events.SUBMIT_CLUE, "data": {"content": "   "}},
            )

    @pytest.mark.asyncio
    async def test_last_vote_resolves_round(
        self, db_manager, room_service, word_pair_service, game_engine, session_store, broadcaster
    ):
        room, _ = await start_room(db_manager, room_service, word_pair_service, game_engine, 4)
        (black_hat,) = ids_with_role(room, PlayerRole.BLACK_HAT)
        civilian = ids_with_role(room, PlayerRole.CIVILIAN)[0]
        state = await give_all_clues(game_engine, session_store, room.id)

        for voter_id in state.turn_order:
            target = civilian if voter_id == black_hat else black_hat
            voter = room.get_player(voter_id)
            await handle_game_message(
                game_engine, room.id, voter.user_id, voter_id,
                {"type": game_events.SUBMIT_VOTE, "data": {"targetPlayerId": target}},
            )

        assert broadcaster.room_types()[-1] == game_events.GAME_OVER
        assert (await room_service.get_room_state(room.id)).winner == PlayerRole.CIVILIAN

    @pytest.mark.asyncio
    async def test_partial_votes_do_not_resolve(
        self, db_manager, room_service, word_pair_service, game_engine, session_store
    ):
        room, _ = await start_room(db_manager, room_service, word_pair_service, game_engine, 4)
        state = await give_all_clues(game_engine, session_store, room.id)
        voter = room.get_player(state.turn_order[0])

        await handle_game_message(
            game_engine, room.id, voter.user_id, voter.id,
            {"type": game_events.SUBMIT_VOTE, "data": {"targetPlayerId": state.turn_order[1]}},
        )

        assert (await session_store.get(room.id)).phase == GamePhase.VOTING

    @pytest.mark.asyncio
    async def test_failed_resolution_can_be_retried(
        self, db_manager, room_service, word_pair_service, game_engine, session_store, broadcaster, monkeypatch
    ):
        room, _ = await start_room(db_manager, room_service, word_pair_service, game_engine, 4)
        (black_hat,) = ids_with_role(room, PlayerRole.BLACK_HAT)
        civilian = ids_with_role(room, PlayerRole.CIVILIAN)[0]
        state = await give_all_clues(game_engine, session_store, room.id)

        mark_player_inactive = room_service.mark_player_inactive
        failed = []

        async def flaky_mark_inactive(room_id, player_id):
            if not failed:
                failed.append(player_id)
                raise StoreUnavailableError()
            return await mark_player_inactive(room_id, player_id)

        monkeypatch.setattr(room_service, "mark_player_inactive", flaky_mark_inactive)

        async def vote(voter_id):
            target = civilian if voter_id == black_hat else black_hat
            await handle_game_message(
                game_engine, room.id, room.get_player(voter_id).user_id, voter_id,
                {"type": game_events.SUBMIT_VOTE, "data": {"targetPlayerId": target}},
            )

        *early_voters, last_voter = state.turn_order
        for voter_id in early_voters:
            await vote(voter_id)
        with pytest.raises(StoreUnavailableError):
            await vote(last_voter)

        state = await session_store.get(room.id)
        assert state.phase == GamePhase.VOTING
        assert state.all_voted

        await handle_game_message(
            game_engine, room.id, room.get_player(last_voter).user_id, last_voter,
            {"type": game_events.RESOLVE_VOTES},
        )

        assert failed == [black_hat]
        assert broadcaster.room_types()[-1] == game_events.GAME_OVER
        assert (await room_service.get_room_state(room.id)).winner == PlayerRole.CIVILIAN

    @pytest.mark.asyncio
    async def test_resolve_request_waits_for_all_votes(
        self, db_manager, room_service, word_pair_service, game_engine, session_store
    ):
        room, _ = await start_room(db_manager, room_service, word_pair_service, game_engine, 4)
        state = await give_all_clues(game_engine, session_store, room.id)
        voter = room.get_player(state.turn_order[0])

        with pytest.raises(PreconditionError) as exc_info:
            await handle_game_message(
                game_engine, room.id, voter.user_id, voter.id, {"type": game_events.RESOLVE_VOTES}
            )
        assert exc_info.value.code == "votes_pending"
        assert (await session_store.get(room.id)).phase == GamePhase.VOTING

    @pytest.mark.asyncio
    async def test_unknown_message_type(self, game_engine):
        with pytest.raises(GameError) as exc_info:
            await handle_game_message(game_engine, "room-1", "u1", "p1", {"type": "game:dance"})
        assert exc_info.value.code == "unknown_message_type"
