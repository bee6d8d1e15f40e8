"""
Partner / opponent history.

Each row counts how often a player has partnered with or faced another
player in a session. Every observation is written in both directions so
lookups are always keyed by the subject player.

Increments are a single INSERT ... ON CONFLICT DO UPDATE SET count = count + 1,
so two matches completing at the same time cannot lose an update.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from pickleball.database.models import PlayerHistory, RelationshipType
from pickleball.services.match_optimizer import HistoryMatrix
from pickleball.utils.constants import PLAYERS_PER_TEAM

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

_CONFLICT_COLUMNS = ["session_id", "player_id", "other_player_id", "relationship_type"]


async def load_history(
    session: AsyncSession, session_id: int, player_ids: Iterable[int]
) -> HistoryMatrix:
    """
    Load the history among a set of candidate players.

    Args:
        session: Database session
        session_id: Play session ID
        player_ids: Candidate players; only pairs with both ends in this set are read

    Returns:
        HistoryMatrix with partner and opponent counts
    """
    ids = list(player_ids)
    if not ids:
        return HistoryMatrix()
    result = await session.execute(
        select(PlayerHistory).where(
            PlayerHistory.session_id == session_id,
            PlayerHistory.player_id.in_(ids),
            PlayerHistory.other_player_id.in_(ids),
        )
    )
    return HistoryMatrix.from_records(result.scalars().all())


async def get_player_history(
    session: AsyncSession,
    session_id: int,
    player_id: int,
    relationship: Optional[RelationshipType] = None,
) -> List[PlayerHistory]:
    """Get one player's history rows, most repeated first."""
    query = select(PlayerHistory).where(
        PlayerHistory.session_id == session_id,
        PlayerHistory.player_id == player_id,
    )
    if relationship is not None:
        query = query.where(PlayerHistory.relationship_type == relationship.value)
    result = await session.execute(
        query.order_by(PlayerHistory.count.desc(), PlayerHistory.other_player_id)
    )
    return list(result.scalars().all())


async def upsert_history(
    session: AsyncSession,
    session_id: int,
    player_id: int,
    other_player_id: int,
    relationship: RelationshipType,
    round_number: int,
) -> None:
    """
    Count one occurrence of player_id meeting other_player_id (one direction only).

    Creates the row at count 1 or increments it and moves last_round forward.

    Raises:
        ValueError: If the bound database has no INSERT ... ON CONFLICT support here
    """
    dialect = session.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)

    if insert is None:
        raise ValueError(f"Unsupported database dialect {dialect}")

    stmt = insert(PlayerHistory).values(
        session_id=session_id,
        player_id=player_id,
        other_player_id=other_player_id,
        relationship_type=relationship.value,
        count=1,
        last_round=round_number,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=_CONFLICT_COLUMNS,
        set_=dict(
            count=PlayerHistory.count + 1,
            last_round=stmt.excluded.last_round,
            updated_at=func.now(),
        ),
    )
    await session.execute(stmt)


async def record_pairings(
    session: AsyncSession,
    session_id: int,
    team1: Sequence[int],
    team2: Sequence[int],
    round_number: int,
) -> int:
    """
    Record a finished match: one partnership per team, four cross-team match-ups.

    Every pair is written in both directions.

    Returns:
        Number of history rows written
    """
    pairs = []
    for team in (team1, team2):
        if len(team) == PLAYERS_PER_TEAM:
            pairs.append((team[0], team[1], RelationshipType.PARTNER))
    for a in team1:
        for b in team2:
            pairs.append((a, b, RelationshipType.OPPONENT))

    written = 0
    for a, b, relationship in pairs:
        await upsert_history(session, session_id, a, b, relationship, round_number)
        await upsert_history(session, session_id, b, a, relationship, round_number)
        written += 2

    logger.debug(
        f"Recorded {written} history row(s) for round {round_number} in session {session_id}"
    )
    return written
