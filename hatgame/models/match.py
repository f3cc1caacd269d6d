"""
Match history models
对局历史模型 - 仅追加写入的回合、线索、投票记录
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum, JSON, ForeignKey, Text, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from hatgame.core.database import Base

from hatgame.schemas.game import GamePhase


class Round(Base):
    """One HINTING -> VOTING (-> GUESSING) -> RESULT cycle"""

    __tablename__ = "rounds"
    __table_args__ = (UniqueConstraint("room_id", "round_number", name="uq_round_room_number"),)

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    word_pair_id = Column(String(36), ForeignKey("word_pairs.id"), nullable=False)
    phase = Column(Enum(GamePhase, values_callable=lambda obj: [e.value for e in obj]),
                   default=GamePhase.HINTING, nullable=False)
    turn_order = Column(JSON, default=list, nullable=False)
    eliminated_player_id = Column(String(36), nullable=True)

    started_at = Column(DateTime(timezone=True), server_default=func.now())
    ended_at = Column(DateTime(timezone=True), nullable=True)

    clues = relationship("Clue", back_populates="round", order_by="Clue.position")
    votes = relationship("Vote", back_populates="round")

    def __repr__(self):
        return f"<Round(room_id={self.room_id}, round={self.round_number}, phase={self.phase})>"


class Clue(Base):
    """Clue given by a player during HINTING"""

    __tablename__ = "clues"

    id = Column(String(36), primary_key=True, index=True)
    round_id = Column(String(36), ForeignKey("rounds.id"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False)
    content = Column(Text, nullable=False)
    position = Column(Integer, nullable=False)  # 本回合内的发言顺序

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    round = relationship("Round", back_populates="clues")
    player = relationship("Player", foreign_keys=[player_id])

    def __repr__(self):
        return f"<Clue(id={self.id}, player_id={self.player_id})>"


class Vote(Base):
    """Vote cast during VOTING; the target is stored as given"""

    __tablename__ = "votes"

    id = Column(String(36), primary_key=True, index=True)
    round_id = Column(String(36), ForeignKey("rounds.id"), nullable=False, index=True)
    voter_id = Column(String(36), ForeignKey("players.id"), nullable=False)
    target_id = Column(String(255), nullable=False)  # 不做外键约束，允许任意目标

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    round = relationship("Round", back_populates="votes")

    def __repr__(self):
        return f"<Vote(id={self.id}, voter_id={self.voter_id}, target_id={self.target_id})>"
