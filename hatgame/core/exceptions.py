"""
Game error taxonomy
游戏错误类型 - 结构化、可本地化的错误
"""

from typing import Any, Dict, Optional


class GameError(Exception):
    """
    Base class for every caller-facing failure.

    ``code`` is a stable message key that clients can localize, ``message``
    is the default English text and ``params`` carries interpolation values.
    """

    code = "game_error"
    status_code = 400
    retryable = False
    default_message = "Game error"

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None, **params: Any):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.params = params
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "params": self.params,
            "retryable": self.retryable,
        }


class PreconditionError(GameError):
    """Operation is not allowed in the current state; nothing was changed."""

    code = "precondition_failed"
    status_code = 409
    default_message = "Operation not allowed right now"


class WrongPhaseError(PreconditionError):
    code = "wrong_phase"
    default_message = "This action is not allowed in the current phase"


class OutOfTurnError(PreconditionError):
    code = "out_of_turn"
    default_message = "It is not your turn"


class AlreadyVotedError(PreconditionError):
    code = "already_voted"
    default_message = "You have already voted this round"


class NotHostError(PreconditionError):
    code = "not_host"
    status_code = 403
    default_message = "Only the host can do this"


class NotFoundError(GameError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class RoomNotFoundError(NotFoundError):
    code = "room_not_found"
    default_message = "Room does not exist"


class GameNotFoundError(NotFoundError):
    code = "game_not_found"
    default_message = "Game has not started"


class PlayerNotFoundError(NotFoundError):
    code = "player_not_found"
    default_message = "Player does not exist"


class WordPairNotFoundError(NotFoundError):
    code = "word_pair_not_found"
    default_message = "Word pair does not exist"


class ResourceUnavailableError(GameError):
    """A required resource is missing; may succeed once it is provisioned."""

    code = "resource_unavailable"
    status_code = 503
    default_message = "Required resource is unavailable"


class StoreUnavailableError(GameError):
    """A backing store timed out or is unreachable."""

    code = "store_unavailable"
    status_code = 503
    retryable = True
    default_message = "Storage is temporarily unavailable, please retry"


class ResolutionInvariantError(GameError):
    """Internal state is inconsistent; the operation cannot proceed safely."""

    code = "resolution_invariant"
    status_code = 500
    default_message = "Game state is inconsistent"
