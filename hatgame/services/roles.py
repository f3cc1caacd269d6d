"""
Role assignment
角色分配 - 纯函数，不依赖任何存储
"""

import random
from typing import List, Optional

from hatgame.core.config import settings
from hatgame.core.exceptions import PreconditionError
from hatgame.schemas.game import PlayerRole

# Role order must not be derivable from any other game randomness
_system_random = random.SystemRandom()


def assign_roles(
    player_count: int,
    rng: Optional[random.Random] = None,
    *,
    min_players: Optional[int] = None,
    white_hat_threshold: Optional[int] = None,
) -> List[PlayerRole]:
    """
    Build a shuffled role list for ``player_count`` active players.

    Exactly one BLACK_HAT, one WHITE_HAT when the count exceeds
    ``white_hat_threshold``, everyone else CIVILIAN.
    """
    min_players = settings.MIN_PLAYERS if min_players is None else min_players
    white_hat_threshold = settings.WHITE_HAT_THRESHOLD if white_hat_threshold is None else white_hat_threshold

    if player_count < min_players:
        raise PreconditionError(
            f"At least {min_players} players are required",
            code="not_enough_players",
            min_players=min_players,
            player_count=player_count,
        )

    roles = [PlayerRole.BLACK_HAT]
    if player_count > white_hat_threshold:
        roles.append(PlayerRole.WHITE_HAT)
    roles.extend([PlayerRole.CIVILIAN] * (player_count - len(roles)))

    (rng or _system_random).shuffle(roles)
    return roles
