"""
Game Pydantic schemas
游戏状态、结果与请求模型
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlayerRole(str, Enum):
    """玩家角色枚举"""
    CIVILIAN = "CIVILIAN"
    BLACK_HAT = "BLACK_HAT"
    WHITE_HAT = "WHITE_HAT"


class GamePhase(str, Enum):
    """回合阶段枚举"""
    HINTING = "HINTING"
    VOTING = "VOTING"
    GUESSING = "GUESSING"
    RESULT = "RESULT"


class RoomStatus(str, Enum):
    """房间状态枚举"""
    WAITING = "WAITING"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"


class ClueRecord(BaseModel):
    """一条线索"""
    player_id: str
    display_name: str
    content: str
    created_at: datetime = Field(default_factory=utcnow)


class GameState(BaseModel):
    """
    Per-room game session.

    Lives in the session store for the whole game and is replaced as a unit
    on every accepted operation.
    """
    room_id: str
    round_number: int = 1
    phase: GamePhase = GamePhase.HINTING
    turn_order: List[str]
    current_turn_index: int = 0
    clues: List[ClueRecord] = Field(default_factory=list)
    votes: Dict[str, str] = Field(default_factory=dict)  # voter_id -> target_id
    eliminated_players: List[str] = Field(default_factory=list)
    departed_players: List[str] = Field(default_factory=list)  # left the room mid-round
    word_pair_id: str
    started_at: datetime = Field(default_factory=utcnow)

    @property
    def active_player_ids(self) -> List[str]:
        """Turn-order members that have neither been eliminated nor left"""
        return [pid for pid in self.turn_order if not self.is_out(pid)]

    def is_out(self, player_id: str) -> bool:
        return player_id in self.eliminated_players or player_id in self.departed_players

    @property
    def current_player_id(self) -> Optional[str]:
        if self.current_turn_index < len(self.turn_order):
            return self.turn_order[self.current_turn_index]
        return None

    @property
    def all_voted(self) -> bool:
        return all(pid in self.votes for pid in self.active_player_ids)

    def advance_turn(self) -> None:
        """Move the cursor to the next player still in the round"""
        self.current_turn_index += 1
        while (
            self.current_turn_index < len(self.turn_order)
            and self.is_out(self.turn_order[self.current_turn_index])
        ):
            self.current_turn_index += 1


class GamePublicState(BaseModel):
    """State visible to every player in the room"""
    room_id: str
    round_number: int
    phase: GamePhase
    turn_order: List[str]
    current_player_id: Optional[str] = None
    clues: List[ClueRecord]
    voters: List[str]
    eliminated_players: List[str]
    departed_players: List[str] = Field(default_factory=list)
    hint_time_seconds: int
    vote_time_seconds: int


class PlayerView(BaseModel):
    """A player's private view: own role and word"""
    room_id: str
    player_id: str
    round_number: int
    phase: GamePhase
    role: Optional[PlayerRole] = None
    word: Optional[str] = None  # WHITE_HAT receives no word
    is_eliminated: bool = False


class GameStarted(BaseModel):
    room_id: str
    round_number: int
    word_pair_id: str
    first_player_id: str


class ClueResult(BaseModel):
    next_player_id: Optional[str] = None
    voting_started: bool = False


class VoteSubmitted(BaseModel):
    all_voted: bool
    vote_count: int


class RoundResolution(BaseModel):
    """投票结算结果"""
    eliminated_player_id: Optional[str] = None
    eliminated_role: Optional[PlayerRole] = None
    is_white_hat: bool = False
    is_tie: bool = False
    vote_counts: Dict[str, int] = Field(default_factory=dict)
    game_over: bool = False
    winner: Optional[PlayerRole] = None


class GuessResult(BaseModel):
    correct: bool
    correct_word: str
    game_over: bool = False
    winner: Optional[PlayerRole] = None


class ClueCreate(BaseModel):
    """线索提交请求"""
    content: str = Field(..., min_length=1, max_length=200)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Clue must not be empty")
        return v


class VoteCreate(BaseModel):
    """投票请求"""
    target_player_id: str = Field(..., min_length=1)


class GuessCreate(BaseModel):
    """白帽猜词请求"""
    guess: str = Field(..., min_length=1, max_length=100)

    @field_validator("guess")
    @classmethod
    def validate_guess(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Guess must not be empty")
        return v
