"""
Vote tally and win-condition rules
投票统计与胜负判定
"""

import unicodedata
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple

from hatgame.schemas.game import PlayerRole


def tally_votes(votes: Dict[str, str]) -> Tuple[Dict[str, int], List[str]]:
    """
    Count votes per target.

    Returns the counts and every target that reached the maximum. With no
    votes at all the top list is empty.
    """
    counts = Counter(votes.values())
    if not counts:
        return {}, []

    max_votes = max(counts.values())
    top_targets = [target for target, count in counts.items() if count == max_votes]
    return dict(counts), top_targets


def evaluate_winner(active_roles: Iterable[Optional[PlayerRole]]) -> Optional[PlayerRole]:
    """
    Decide the winning side from the roles of the active players.

    Returns None while the game should continue.
    """
    roles = list(active_roles)
    has_black_hat = PlayerRole.BLACK_HAT in roles

    if len(roles) <= 2 and has_black_hat:
        return PlayerRole.BLACK_HAT
    if not has_black_hat:
        return PlayerRole.CIVILIAN
    return None


def _normalize_word(text: str) -> str:
    return unicodedata.normalize("NFC", text.strip()).casefold()


def guess_matches(guess: str, word: str) -> bool:
    """Exact match ignoring case and surrounding whitespace"""
    return _normalize_word(guess) == _normalize_word(word)
