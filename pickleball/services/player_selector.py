"""
Pick the players for the next round.
"""

import logging
import random
from typing import List, Optional

from pickleball.database.models import Player
from pickleball.services.errors import InsufficientPlayersError
from pickleball.services.weight_service import PlayerWeight, rank_by_weight
from pickleball.utils.constants import PLAYERS_PER_MATCH

logger = logging.getLogger(__name__)


def players_needed(court_count: int) -> int:
    """Headcount for one round across all courts."""
    if court_count < 1:
        raise ValueError("court_count must be at least 1")
    return court_count * PLAYERS_PER_MATCH


def select_players(
    player_weights: List[PlayerWeight],
    need: int,
    rng: Optional[random.Random] = None,
) -> List[Player]:
    """
    Take the `need` lowest-weight players.

    Ties are re-shuffled on every call, so a stable subset of equally-rested
    players cannot keep crowding out the rest. Availability is not touched.

    Args:
        player_weights: Eligible players with their weights
        need: Number of players required
        rng: Random source for tie order

    Returns:
        Exactly `need` players, in no meaningful order

    Raises:
        InsufficientPlayersError: If fewer than `need` players are eligible
    """
    if len(player_weights) < need:
        raise InsufficientPlayersError(available=len(player_weights), required=need)

    ranked = rank_by_weight(player_weights, rng)
    selected = ranked[:need]
    if len(ranked) > need:
        logger.debug(
            f"Selected {need} of {len(ranked)} players "
            f"(cutoff weight {selected[-1].weight}, next {ranked[need].weight})"
        )
    return [pw.player for pw in selected]
