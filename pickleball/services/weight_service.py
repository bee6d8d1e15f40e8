"""
Selection weights.

A player's weight is their priority for the next round: lower weight plays
sooner. Weight grows by WEIGHT_PER_MATCH for every match played.
"""

import random
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pickleball.database.models import Player
from pickleball.services import player_service
from pickleball.utils.constants import WEIGHT_PER_MATCH


@dataclass
class PlayerWeight:
    player: Player
    weight: int


def compute_weight(matches_played: Optional[int]) -> int:
    """Weight for a play count. Never negative; never decreases as play count grows."""
    return max(matches_played or 0, 0) * WEIGHT_PER_MATCH


def rank_by_weight(
    player_weights: List[PlayerWeight], rng: Optional[random.Random] = None
) -> List[PlayerWeight]:
    """
    Sort ascending by weight with equal weights in random order.

    Shuffling first and then stable-sorting gives each ordering of a tie
    group the same probability.
    """
    rng = rng or random.Random()
    ranked = list(player_weights)
    rng.shuffle(ranked)
    ranked.sort(key=lambda pw: pw.weight)
    return ranked


async def compute_player_weights(
    session: AsyncSession,
    session_id: int,
    include_inactive: bool = False,
    rng: Optional[random.Random] = None,
) -> List[PlayerWeight]:
    """
    Weights for the non-deleted players of a session, lowest first.

    Args:
        session: Database session
        session_id: Play session ID
        include_inactive: Also include players currently on court
        rng: Random source for tie order (seed it in tests)

    Returns:
        List of PlayerWeight sorted ascending by weight

    Raises:
        SessionNotFoundError: If the session does not exist or was deleted
    """
    await player_service.get_play_session(session, session_id)
    players = await player_service.list_players(
        session, session_id, available_only=not include_inactive
    )
    weights = [PlayerWeight(player=p, weight=compute_weight(p.matches_played)) for p in players]
    return rank_by_weight(weights, rng)
