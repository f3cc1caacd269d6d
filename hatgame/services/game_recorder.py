"""
Match history recording service
对局历史记录服务 - 回合、线索、投票仅追加写入数据库

Gameplay never reads these records back; a failed write is logged for
reconciliation and does not fail the game operation that triggered it.
"""

import uuid
import logging
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hatgame.core.database import DatabaseManager
from hatgame.models.match import Round, Clue, Vote
from hatgame.schemas.game import GamePhase

logger = logging.getLogger(__name__)


class GameRecorder:
    """对局历史记录器"""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    async def _get_round(self, session: AsyncSession, room_id: str, round_number: int) -> Optional[Round]:
        stmt = select(Round).where(Round.room_id == room_id, Round.round_number == round_number)
        return (await session.execute(stmt)).scalar_one_or_none()

    async def record_round_start(
        self, room_id: str, round_number: int, word_pair_id: str, turn_order: List[str]
    ) -> bool:
        try:
            async with self.db_manager.get_session() as session:
                session.add(Round(
                    id=str(uuid.uuid4()),
                    room_id=room_id,
                    round_number=round_number,
                    word_pair_id=word_pair_id,
                    phase=GamePhase.HINTING,
                    turn_order=list(turn_order),
                    started_at=datetime.now(timezone.utc),
                ))
            return True
        except Exception as e:
            logger.error(f"Failed to record start of round {round_number} in room {room_id}: {e}")
            return False

    async def record_clue(
        self, room_id: str, round_number: int, player_id: str, content: str, position: int
    ) -> bool:
        try:
            async with self.db_manager.get_session() as session:
                round_ = await self._get_round(session, room_id, round_number)
                if not round_:
                    logger.error(f"Round {round_number} missing in history for room {room_id}, clue not recorded")
                    return False
                session.add(Clue(
                    id=str(uuid.uuid4()),
                    round_id=round_.id,
                    player_id=player_id,
                    content=content,
                    position=position,
                ))
            return True
        except Exception as e:
            logger.error(f"Failed to record clue from {player_id} in room {room_id}: {e}")
            return False

    async def record_vote(self, room_id: str, round_number: int, voter_id: str, target_id: str) -> bool:
        try:
            async with self.db_manager.get_session() as session:
                round_ = await self._get_round(session, room_id, round_number)
                if not round_:
                    logger.error(f"Round {round_number} missing in history for room {room_id}, vote not recorded")
                    return False
                session.add(Vote(
                    id=str(uuid.uuid4()),
                    round_id=round_.id,
                    voter_id=voter_id,
                    target_id=target_id,
                ))
            return True
        except Exception as e:
            logger.error(f"Failed to record vote from {voter_id} in room {room_id}: {e}")
            return False

    async def record_phase(
        self,
        room_id: str,
        round_number: int,
        phase: GamePhase,
        eliminated_player_id: Optional[str] = None,
    ) -> bool:
        """Move a round to ``phase``; RESULT also stamps ``ended_at``"""
        try:
            async with self.db_manager.get_session() as session:
                round_ = await self._get_round(session, room_id, round_number)
                if not round_:
                    logger.error(f"Round {round_number} missing in history for room {room_id}, phase not recorded")
                    return False
                round_.phase = phase
                if eliminated_player_id:
                    round_.eliminated_player_id = eliminated_player_id
                if phase == GamePhase.RESULT:
                    round_.ended_at = datetime.now(timezone.utc)
            return True
        except Exception as e:
            logger.error(f"Failed to record phase {phase.value} for room {room_id}: {e}")
            return False

    async def get_match_history(self, room_id: str) -> List[Dict[str, Any]]:
        """All rounds of a room with their clues and votes"""
        async with self.db_manager.get_session() as session:
            rounds = (await session.execute(
                select(Round).where(Round.room_id == room_id).order_by(Round.round_number)
            )).scalars().all()

            history = []
            for round_ in rounds:
                clues = (await session.execute(
                    select(Clue).where(Clue.round_id == round_.id).order_by(Clue.position)
                )).scalars().all()
                votes = (await session.execute(
                    select(Vote).where(Vote.round_id == round_.id).order_by(Vote.created_at, Vote.id)
                )).scalars().all()

                history.append({
                    "round_number": round_.round_number,
                    "word_pair_id": round_.word_pair_id,
                    "phase": round_.phase.value,
                    "turn_order": round_.turn_order,
                    "eliminated_player_id": round_.eliminated_player_id,
                    "started_at": round_.started_at,
                    "ended_at": round_.ended_at,
                    "clues": [
                        {"player_id": c.player_id, "content": c.content, "position": c.position}
                        for c in clues
                    ],
                    "votes": [{"voter_id": v.voter_id, "target_id": v.target_id} for v in votes],
                })
            return history
