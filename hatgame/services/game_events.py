"""
Game broadcast events
游戏广播事件 - 事件名称与消息体构造
"""

from typing import Any, Dict, Optional, Protocol

from hatgame.core.config import settings
from hatgame.schemas.game import PlayerRole

# Client -> server
START_GAME = "game:start"
SUBMIT_CLUE = "game:submit_clue"
SUBMIT_VOTE = "game:submit_vote"
SUBMIT_GUESS = "game:submit_guess"
RESOLVE_VOTES = "game:resolve_votes"  # retry a resolution that failed after the last vote

# Server -> client
ROOM_UPDATED = "room:updated"
GAME_STARTED = "game:started"
ROUND_STARTED = "round:started"
CLUE_SUBMITTED = "round:clue_submitted"
YOUR_TURN = "round:your_turn"
VOTING_STARTED = "round:voting_started"
VOTE_UPDATE = "round:vote_update"
PLAYER_ELIMINATED = "round:player_eliminated"
GUESSING_STARTED = "round:guessing_started"
ROUND_RESULT = "round:result"
GAME_OVER = "game:over"
ERROR = "error"

ROLE_MESSAGES = {
    PlayerRole.CIVILIAN: "You are a Civilian! Hint at your word without giving yourself away.",
    PlayerRole.BLACK_HAT: "You are the Black Hat! Keep your identity hidden.",
    PlayerRole.WHITE_HAT: "You are the White Hat! Listen carefully and work out the Civilians' word.",
}

WINNER_MESSAGES = {
    PlayerRole.CIVILIAN: "Civilians win! The Black Hat has been caught.",
    PlayerRole.BLACK_HAT: "The Black Hat wins! Civilians failed to find the impostor.",
    PlayerRole.WHITE_HAT: "The White Hat wins! The Civilians' word was guessed correctly.",
}


class Broadcaster(Protocol):
    """Anything that can deliver an event to a room or to a single player"""

    async def broadcast_to_room(self, room_id: str, message: Dict[str, Any]) -> int:
        ...

    async def send_to_player(self, room_id: str, player_id: str, message: Dict[str, Any]) -> bool:
        ...


def event(event_type: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"type": event_type, "data": data or {}}


def winner_message(winner: Optional[PlayerRole]) -> str:
    return WINNER_MESSAGES.get(winner, "Game over.")


def round_started(round_number: int, role: Optional[PlayerRole], word: Optional[str]) -> Dict[str, Any]:
    return event(ROUND_STARTED, {
        "round": round_number,
        "role": role.value if role else None,
        "word": word,  # None for WHITE_HAT
        "message": ROLE_MESSAGES.get(role, ""),
    })


def your_turn() -> Dict[str, Any]:
    return event(YOUR_TURN, {
        "message": "It's your turn to give a clue!",
        "timeLimit": settings.HINT_TIME_SECONDS,
    })


def clue_submitted(player_id: str, display_name: str, content: str) -> Dict[str, Any]:
    return event(CLUE_SUBMITTED, {"playerId": player_id, "displayName": display_name, "content": content})


def voting_started() -> Dict[str, Any]:
    return event(VOTING_STARTED, {
        "message": "Everyone has given a clue! Voting starts now.",
        "timeLimit": settings.VOTE_TIME_SECONDS,
    })


def vote_update(voter_id: str, vote_count: int) -> Dict[str, Any]:
    return event(VOTE_UPDATE, {"voterId": voter_id, "voteCount": vote_count})


def player_eliminated(player_id: str, display_name: Optional[str], role: Optional[PlayerRole]) -> Dict[str, Any]:
    return event(PLAYER_ELIMINATED, {
        "playerId": player_id,
        "displayName": display_name,
        "role": role.value if role else None,
    })


def guessing_started(private: bool) -> Dict[str, Any]:
    if private:
        message = "You have been eliminated! Guess the Civilians' word to win."
    else:
        message = "The White Hat is guessing the word..."
    return event(GUESSING_STARTED, {"message": message})


def tie_result() -> Dict[str, Any]:
    return event(ROUND_RESULT, {
        "message": "The vote is tied! Nobody is eliminated. Moving to the next round.",
        "eliminatedPlayerId": None,
    })


def wrong_guess_result(guess: str, correct_word: str) -> Dict[str, Any]:
    return event(ROUND_RESULT, {
        "message": f'The White Hat guessed wrong ("{guess}"). The word was "{correct_word}". Moving to the next round.',
        "whiteHatGuess": guess,
        "correctWord": correct_word,
    })


def guess_forfeited(correct_word: str) -> Dict[str, Any]:
    return event(ROUND_RESULT, {
        "message": f'The White Hat left without guessing. The word was "{correct_word}". Moving to the next round.',
        "correctWord": correct_word,
    })


def game_over(
    winner: Optional[PlayerRole],
    guess: Optional[str] = None,
    correct_word: Optional[str] = None,
    correct: Optional[bool] = None,
) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "winner": winner.value if winner else None,
        "message": winner_message(winner),
    }
    if guess is not None:
        data.update({"whiteHatGuess": guess, "correctWord": correct_word, "correct": correct})
    return event(GAME_OVER, data)


def error(code: str, message: str) -> Dict[str, Any]:
    return event(ERROR, {"code": code, "message": message})
