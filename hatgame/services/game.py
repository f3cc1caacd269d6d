"""
Game service
游戏核心逻辑服务 - 回合/阶段状态机与投票结算
"""

import asyncio
import random
import logging
from typing import Any, Dict, Iterable, List, Optional

from hatgame.core.config import settings
from hatgame.core.exceptions import (
    GameNotFoundError, NotHostError, OutOfTurnError, AlreadyVotedError,
    PlayerNotFoundError, PreconditionError, ResolutionInvariantError,
    ResourceUnavailableError, RoomNotFoundError, WrongPhaseError,
)
from hatgame.schemas.game import (
    ClueRecord, ClueResult, GamePhase, GamePublicState, GameStarted, GameState,
    GuessResult, PlayerRole, PlayerView, RoomStatus, RoundResolution, VoteSubmitted,
)
from hatgame.schemas.room import RoomState
from hatgame.services import game_events
from hatgame.services.game_events import Broadcaster
from hatgame.services.game_recorder import GameRecorder
from hatgame.services.roles import assign_roles
from hatgame.services.room import RoomService
from hatgame.services.rules import evaluate_winner, guess_matches, tally_votes
from hatgame.services.session_store import RedisGameSessionStore
from hatgame.services.word_pair import WordPairService, word_for_role

logger = logging.getLogger(__name__)


class GameEngine:
    """
    游戏引擎 - 管理游戏状态和逻辑

    Every operation runs under a per-room lock: load the session, check
    preconditions, then write in a fixed order. Durable room writes come
    first and abort the operation on failure; the session write follows;
    match history is best effort; events go out last.
    """

    def __init__(
        self,
        room_service: RoomService,
        session_store: RedisGameSessionStore,
        word_pair_service: WordPairService,
        broadcaster: Optional[Broadcaster] = None,
        recorder: Optional[GameRecorder] = None,
        role_rng: Optional[random.Random] = None,
        turn_rng: Optional[random.Random] = None,
    ):
        self.room_service = room_service
        self.session_store = session_store
        self.word_pair_service = word_pair_service
        self.broadcaster = broadcaster
        self.recorder = recorder
        self.role_rng = role_rng
        self.turn_rng = turn_rng or random.Random()
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, room_id: str) -> asyncio.Lock:
        return self._locks.setdefault(room_id, asyncio.Lock())

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def start_game(
        self, room_id: str, requester_user_id: str, category_id: Optional[str] = None
    ) -> GameStarted:
        """开始游戏（仅房主）"""
        async with self._lock(room_id):
            room = await self.room_service.get_room_state(room_id)
            if not room:
                raise RoomNotFoundError(room_id=room_id)
            if room.host_id != requester_user_id:
                raise NotHostError("Only the host can start the game")
            if room.status != RoomStatus.WAITING:
                raise PreconditionError("The game has already started", code="room_not_waiting")

            active = room.active_players
            roles = assign_roles(len(active), self.role_rng)

            pair = await self.word_pair_service.get_random_active_pair(category_id)
            if not pair:
                raise ResourceUnavailableError(
                    "No word pair found, please add words first", code="no_word_pair", category_id=category_id
                )

            assignments = {player.id: role for player, role in zip(active, roles)}
            turn_order = [player.id for player in active]
            self.turn_rng.shuffle(turn_order)

            room = await self.room_service.begin_game(room_id, assignments)
            state = GameState(room_id=room_id, turn_order=turn_order, word_pair_id=pair.id)
            try:
                await self.session_store.put(state)
            except Exception:
                # 会话写入失败时回滚房间，允许房主重试
                await self.room_service.cancel_game(room_id)
                raise

            if self.recorder:
                await self.recorder.record_round_start(room_id, 1, pair.id, turn_order)

            await self._broadcast(room_id, game_events.event(game_events.GAME_STARTED, {"room": room.public()}))
            for player in room.active_players:
                await self._send(
                    room_id, player.id,
                    game_events.round_started(1, player.role, word_for_role(pair, player.role)),
                )
            await self._send(room_id, state.current_player_id, game_events.your_turn())

            logger.info(f"Game started in room {room.code} with {len(turn_order)} players")
            return GameStarted(
                room_id=room_id,
                round_number=state.round_number,
                word_pair_id=pair.id,
                first_player_id=state.current_player_id,
            )

    async def submit_clue(self, room_id: str, player_id: str, content: str) -> ClueResult:
        """提交线索"""
        content = (content or "").strip()
        if not content:
            raise PreconditionError("Clue must not be empty", code="empty_clue")

        async with self._lock(room_id):
            state = await self._require_state(room_id)
            if state.phase != GamePhase.HINTING:
                raise WrongPhaseError("It is not time to give clues", phase=state.phase.value)
            if state.current_player_id != player_id:
                raise OutOfTurnError(expected_player_id=state.current_player_id)

            room = await self.room_service.get_room_state(room_id)
            player = room.get_player(player_id) if room else None
            display_name = player.display_name if player else player_id

            position = len(state.clues)
            state.clues.append(ClueRecord(player_id=player_id, display_name=display_name, content=content))
            state.advance_turn()

            voting_started = state.current_turn_index >= len(state.turn_order)
            if voting_started:
                state.phase = GamePhase.VOTING

            await self.session_store.put(state)

            if self.recorder:
                await self.recorder.record_clue(room_id, state.round_number, player_id, content, position)
                if voting_started:
                    await self.recorder.record_phase(room_id, state.round_number, GamePhase.VOTING)

            await self._broadcast(room_id, game_events.clue_submitted(player_id, display_name, content))
            if voting_started:
                await self._broadcast(room_id, game_events.voting_started())
            else:
                await self._send(room_id, state.current_player_id, game_events.your_turn())

            return ClueResult(
                next_player_id=None if voting_started else state.current_player_id,
                voting_started=voting_started,
            )

    async def submit_vote(self, room_id: str, voter_id: str, target_id: str) -> VoteSubmitted:
        """
        投票

        The target is not checked: self votes, votes for
        eliminated players and unknown ids are all recorded.
        """
        async with self._lock(room_id):
            state = await self._require_state(room_id)
            if state.phase != GamePhase.VOTING:
                raise WrongPhaseError("It is not time to vote", phase=state.phase.value)
            if voter_id in state.eliminated_players:
                raise PreconditionError("You have been eliminated and cannot vote", code="voter_eliminated")
            if voter_id in state.departed_players:
                raise PreconditionError("You have left the room and cannot vote", code="voter_departed")
            if voter_id not in state.turn_order:
                raise PlayerNotFoundError("You are not playing this round", player_id=voter_id)
            if voter_id in state.votes:
                raise AlreadyVotedError()

            state.votes[voter_id] = target_id
            await self.session_store.put(state)

            if self.recorder:
                await self.recorder.record_vote(room_id, state.round_number, voter_id, target_id)

            vote_count = len(state.votes)
            await self._broadcast(room_id, game_events.vote_update(voter_id, vote_count))
            return VoteSubmitted(all_voted=state.all_voted, vote_count=vote_count)

    async def resolve_votes(self, room_id: str, require_complete: bool = False) -> RoundResolution:
        """
        结算投票：唯一最高票出局，平票或无人投票则无人出局

        With ``require_complete`` the call is refused while votes are still
        outstanding; players use it to retry a resolution that failed after
        the last vote was recorded.
        """
        async with self._lock(room_id):
            state = await self._require_state(room_id)
            if state.phase != GamePhase.VOTING:
                raise WrongPhaseError("Votes can only be resolved during voting", phase=state.phase.value)
            if require_complete and not state.all_voted:
                raise PreconditionError("Not everyone has voted yet", code="votes_pending")
            return await self._resolve(state)

    async def _resolve(self, state: GameState) -> RoundResolution:
        room_id = state.room_id
        counts, top_targets = tally_votes(state.votes)

        if len(top_targets) != 1:
            logger.info(f"Round {state.round_number} in room {room_id} tied ({counts}), nobody eliminated")
            await self._start_next_round(state, preface=[game_events.tie_result()])
            return RoundResolution(is_tie=True, vote_counts=counts)

        target_id = top_targets[0]
        room = await self.room_service.require_room(room_id)
        target = room.get_player(target_id)
        if not target:
            raise ResolutionInvariantError(
                "Vote winner is not a member of the room", target_id=target_id
            )

        room = await self.room_service.mark_player_inactive(room_id, target_id)
        if target_id not in state.eliminated_players:
            state.eliminated_players.append(target_id)
        eliminated_event = game_events.player_eliminated(target_id, target.display_name, target.role)

        if target.role == PlayerRole.WHITE_HAT:
            state.phase = GamePhase.GUESSING
            await self.session_store.put(state)
            if self.recorder:
                await self.recorder.record_phase(
                    room_id, state.round_number, GamePhase.GUESSING, eliminated_player_id=target_id
                )

            await self._broadcast(room_id, eliminated_event)
            await self._send(room_id, target_id, game_events.guessing_started(private=True))
            await self._broadcast(room_id, game_events.guessing_started(private=False))
            return RoundResolution(
                eliminated_player_id=target_id,
                eliminated_role=target.role,
                is_white_hat=True,
                vote_counts=counts,
            )

        winner = self._evaluate(room, state)
        if winner:
            await self._end_game(state, winner, preface=[eliminated_event], eliminated_player_id=target_id)
        else:
            await self._start_next_round(state, preface=[eliminated_event], eliminated_player_id=target_id)

        return RoundResolution(
            eliminated_player_id=target_id,
            eliminated_role=target.role,
            vote_counts=counts,
            game_over=winner is not None,
            winner=winner,
        )

    async def submit_white_hat_guess(self, room_id: str, player_id: str, guess: str) -> GuessResult:
        """白帽出局后猜平民词"""
        guess = (guess or "").strip()
        if not guess:
            raise PreconditionError("Guess must not be empty", code="empty_guess")

        async with self._lock(room_id):
            state = await self._require_state(room_id)
            if state.phase != GamePhase.GUESSING:
                raise WrongPhaseError("It is not time to guess", phase=state.phase.value)

            room = await self.room_service.require_room(room_id)
            player = room.get_player(player_id)
            if (
                not player
                or player.role != PlayerRole.WHITE_HAT
                or player_id not in state.eliminated_players
            ):
                raise PreconditionError("Only the eliminated White Hat can guess", code="not_white_hat")

            pair = await self.word_pair_service.get_word_pair(state.word_pair_id)
            correct_word = pair.word_a
            correct = guess_matches(guess, correct_word)

            winner = PlayerRole.WHITE_HAT if correct else self._evaluate(room, state)
            if winner:
                await self._end_game(state, winner, guess=guess, correct_word=correct_word, correct=correct)
                return GuessResult(correct=correct, correct_word=correct_word, game_over=True, winner=winner)

            await self._start_next_round(state, preface=[game_events.wrong_guess_result(guess, correct_word)])
            return GuessResult(correct=False, correct_word=correct_word)

    async def check_win_conditions(self, room_id: str) -> Optional[PlayerRole]:
        """Winner implied by the current active players, None while the game continues"""
        state = await self._require_state(room_id)
        room = await self.room_service.require_room(room_id)
        return self._evaluate(room, state)

    async def get_game_state(self, room_id: str) -> GamePublicState:
        state = await self._require_state(room_id)
        return GamePublicState(
            room_id=room_id,
            round_number=state.round_number,
            phase=state.phase,
            turn_order=state.turn_order,
            current_player_id=state.current_player_id if state.phase == GamePhase.HINTING else None,
            clues=state.clues,
            voters=list(state.votes),
            eliminated_players=state.eliminated_players,
            departed_players=state.departed_players,
            hint_time_seconds=settings.HINT_TIME_SECONDS,
            vote_time_seconds=settings.VOTE_TIME_SECONDS,
        )

    async def get_player_view(self, room_id: str, player_id: str) -> PlayerView:
        state = await self._require_state(room_id)
        room = await self.room_service.require_room(room_id)
        player = room.get_player(player_id)
        if not player:
            raise PlayerNotFoundError(room_id=room_id, player_id=player_id)

        pair = await self.word_pair_service.get_word_pair(state.word_pair_id)
        return PlayerView(
            room_id=room_id,
            player_id=player_id,
            round_number=state.round_number,
            phase=state.phase,
            role=player.role,
            word=word_for_role(pair, player.role),
            is_eliminated=player_id in state.eliminated_players,
        )

    async def leave_room(self, room_id: str, user_id: str) -> Optional[RoomState]:
        """
        离开房间（游戏进行中同步更新回合状态）

        Returns the updated room, or None when the last player left and the
        room was closed.
        """
        async with self._lock(room_id):
            room = await self.room_service.leave_room(room_id, user_id)
            if room is not None and room.status == RoomStatus.IN_PROGRESS:
                player = room.get_player_by_user(user_id)
                await self._remove_player(room, player.id)
                room = await self.room_service.get_room_state(room_id)

        if room is None:
            await self.close_room(room_id)
        return room

    async def close_room(self, room_id: str) -> None:
        """Drop the session of a room that closed mid-game"""
        async with self._lock(room_id):
            await self.session_store.delete(room_id)
        self._locks.pop(room_id, None)
        logger.info(f"Game session for room {room_id} dropped")

    async def _remove_player(self, room: RoomState, player_id: str) -> None:
        """Take a departed player out of the running round"""
        state = await self.session_store.get(room.id)
        if not state or player_id not in state.turn_order or player_id in state.departed_players:
            return

        guessing_white_hat = state.phase == GamePhase.GUESSING and player_id in state.eliminated_players
        if player_id in state.eliminated_players and not guessing_white_hat:
            return

        state.departed_players.append(player_id)
        logger.info(f"Player {player_id} left room {room.id} during {state.phase.value}")

        if state.phase == GamePhase.GUESSING:
            if not guessing_white_hat:
                await self.session_store.put(state)
                return
            # 白帽未猜词就离开，视为猜错
            pair = await self.word_pair_service.get_word_pair(state.word_pair_id)
            forfeited = game_events.guess_forfeited(pair.word_a)
            winner = self._evaluate(room, state)
            if winner:
                await self._end_game(state, winner, preface=[forfeited])
            else:
                await self._start_next_round(state, preface=[forfeited])
            return

        winner = self._evaluate(room, state)
        if winner:
            await self._end_game(state, winner)
            return

        state.votes.pop(player_id, None)
        turn_moved = state.phase == GamePhase.HINTING and state.current_player_id == player_id
        if turn_moved:
            state.advance_turn()
            if state.current_turn_index >= len(state.turn_order):
                state.phase = GamePhase.VOTING

        await self.session_store.put(state)

        if turn_moved and state.phase == GamePhase.VOTING:
            if self.recorder:
                await self.recorder.record_phase(room.id, state.round_number, GamePhase.VOTING)
            await self._broadcast(room.id, game_events.voting_started())
        elif turn_moved:
            await self._send(room.id, state.current_player_id, game_events.your_turn())

        if state.phase == GamePhase.VOTING and state.all_voted:
            await self._resolve(state)

    # ------------------------------------------------------------------
    # Round advancement and termination
    # ------------------------------------------------------------------

    async def _start_next_round(
        self,
        state: GameState,
        preface: Iterable[Dict[str, Any]] = (),
        eliminated_player_id: Optional[str] = None,
    ) -> GameState:
        """Close the current round and open the next one with a fresh word pair"""
        room_id = state.room_id
        room = await self.room_service.require_room(room_id)

        pair = await self.word_pair_service.get_random_active_pair()
        if not pair:
            logger.warning(f"No active word pair left, room {room_id} keeps its current pair")
            pair = await self.word_pair_service.get_word_pair(state.word_pair_id)

        turn_order = [
            player.id for player in room.active_players if player.id not in state.eliminated_players
        ]
        self.turn_rng.shuffle(turn_order)

        next_state = GameState(
            room_id=room_id,
            round_number=state.round_number + 1,
            phase=GamePhase.HINTING,
            turn_order=turn_order,
            eliminated_players=list(state.eliminated_players),
            word_pair_id=pair.id,
            started_at=state.started_at,
        )
        await self.session_store.put(next_state)

        if self.recorder:
            await self.recorder.record_phase(
                room_id, state.round_number, GamePhase.RESULT, eliminated_player_id=eliminated_player_id
            )
            await self.recorder.record_round_start(room_id, next_state.round_number, pair.id, turn_order)

        for message in preface:
            await self._broadcast(room_id, message)
        for player_id in turn_order:
            player = room.get_player(player_id)
            await self._send(
                room_id, player_id,
                game_events.round_started(next_state.round_number, player.role, word_for_role(pair, player.role)),
            )
        await self._send(room_id, next_state.current_player_id, game_events.your_turn())

        logger.info(f"Room {room_id} advanced to round {next_state.round_number}")
        return next_state

    async def _end_game(
        self,
        state: GameState,
        winner: PlayerRole,
        preface: Iterable[Dict[str, Any]] = (),
        eliminated_player_id: Optional[str] = None,
        guess: Optional[str] = None,
        correct_word: Optional[str] = None,
        correct: Optional[bool] = None,
    ) -> None:
        """Finish the room and drop the session; later calls see GameNotFoundError"""
        room_id = state.room_id
        await self.room_service.finish_room(room_id, winner)
        await self.session_store.delete(room_id)

        if self.recorder:
            await self.recorder.record_phase(
                room_id, state.round_number, GamePhase.RESULT, eliminated_player_id=eliminated_player_id
            )

        for message in preface:
            await self._broadcast(room_id, message)
        await self._broadcast(room_id, game_events.game_over(winner, guess, correct_word, correct))
        self._locks.pop(room_id, None)

        logger.info(f"Game in room {room_id} over after round {state.round_number}, winner={winner.value}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_state(self, room_id: str) -> GameState:
        state = await self.session_store.get(room_id)
        if not state:
            raise GameNotFoundError(room_id=room_id)
        return state

    def _evaluate(self, room: RoomState, state: GameState) -> Optional[PlayerRole]:
        roles: List[Optional[PlayerRole]] = [
            player.role for player in room.active_players if player.id not in state.eliminated_players
        ]
        return evaluate_winner(roles)

    async def _broadcast(self, room_id: str, message: Dict[str, Any]) -> None:
        if not self.broadcaster:
            return
        try:
            await self.broadcaster.broadcast_to_room(room_id, message)
        except Exception as e:
            logger.error(f"Failed to broadcast {message.get('type')} to room {room_id}: {e}")

    async def _send(self, room_id: str, player_id: Optional[str], message: Dict[str, Any]) -> None:
        if not self.broadcaster or not player_id:
            return
        try:
            await self.broadcaster.send_to_player(room_id, player_id, message)
        except Exception as e:
            logger.error(f"Failed to send {message.get('type')} to player {player_id}: {e}")
