# Pydantic schemas
from .game import (
    PlayerRole, GamePhase, RoomStatus, ClueRecord, GameState, GamePublicState,
    PlayerView, GameStarted, ClueResult, VoteSubmitted, RoundResolution, GuessResult,
    ClueCreate, VoteCreate, GuessCreate,
)
from .room import RoomPlayer, RoomState, RoomJoinRequest, RoomResponse
from .word_pair import WordPairCreate, WordPairResponse, CategoryResponse, WordPairListResponse
from .common import MessageResponse, ErrorResponse, WebSocketMessage

__all__ = [
    "PlayerRole", "GamePhase", "RoomStatus", "ClueRecord", "GameState", "GamePublicState",
    "PlayerView", "GameStarted", "ClueResult", "VoteSubmitted", "RoundResolution", "GuessResult",
    "ClueCreate", "VoteCreate", "GuessCreate",
    "RoomPlayer", "RoomState", "RoomJoinRequest", "RoomResponse",
    "WordPairCreate", "WordPairResponse", "CategoryResponse", "WordPairListResponse",
    "MessageResponse", "ErrorResponse", "WebSocketMessage",
]
