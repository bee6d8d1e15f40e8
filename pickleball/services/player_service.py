"""
Player registry.

Reads and updates the players of a play session: who is in the pool, who
is on court, and how much everyone has played. Players are never physically
removed; removal sets deleted_at so history rows keep pointing at them.
"""

import logging
from typing import Iterable, List, Optional, Set

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from pickleball.database.models import Session, Player, Match, MatchPlayer, MatchStatus
from pickleball.services.errors import SessionNotFoundError, PlayerNotFoundError
from pickleball.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


async def get_play_session(session: AsyncSession, session_id: int) -> Session:
    """
    Get a non-deleted play session.

    Raises:
        SessionNotFoundError: If the session does not exist or was deleted
    """
    result = await session.execute(
        select(Session).where(Session.id == session_id, Session.deleted_at.is_(None))
    )
    play_session = result.scalar_one_or_none()
    if not play_session:
        raise SessionNotFoundError(f"Session {session_id} not found")
    return play_session


async def list_players(
    session: AsyncSession,
    session_id: int,
    available_only: bool = False,
    include_deleted: bool = False,
) -> List[Player]:
    """
    Get the players of a session.

    Args:
        session: Database session
        session_id: Play session ID
        available_only: Only players waiting for a match
        include_deleted: Also return removed players

    Returns:
        Players ordered by id
    """
    query = select(Player).where(Player.session_id == session_id)
    if not include_deleted:
        query = query.where(Player.deleted_at.is_(None))
    if available_only:
        query = query.where(Player.is_available.is_(True))
    result = await session.execute(query.order_by(Player.id))
    return list(result.scalars().all())


async def get_player(session: AsyncSession, player_id: int) -> Player:
    """
    Get a player by ID, removed or not.

    Raises:
        PlayerNotFoundError: If no such player exists
    """
    result = await session.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    if not player:
        raise PlayerNotFoundError(f"Player {player_id} not found")
    return player


async def add_player(session: AsyncSession, session_id: int, name: str) -> Player:
    """
    Add a player to a session.

    Late joiners start at the lowest play count among the current players so
    they slot in with the least-played group instead of jumping the queue
    for every round until they catch up.

    Args:
        session: Database session
        session_id: Play session ID
        name: Display name

    Returns:
        The new Player

    Raises:
        ValueError: If name is blank
        SessionNotFoundError: If the session does not exist
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Name is required")

    await get_play_session(session, session_id)

    starting_matches = await get_min_matches_played(session, session_id) or 0

    player = Player(
        session_id=session_id,
        name=name,
        is_available=True,
        matches_played=starting_matches,
        last_match_round=0,
    )
    session.add(player)
    await session.flush()
    await session.refresh(player)
    logger.info(
        f"Added player {player.id} ({name!r}) to session {session_id} "
        f"starting at {starting_matches} match(es)"
    )
    return player


async def remove_player(session: AsyncSession, player_id: int) -> Player:
    """Soft-delete a player so they are never selected again."""
    player = await get_player(session, player_id)
    if player.deleted_at is None:
        player.deleted_at = utcnow()
        await session.flush()
        logger.info(f"Removed player {player_id} from session {player.session_id}")
    return player


async def restore_player(session: AsyncSession, player_id: int) -> Player:
    """
    Undo a removal and put the player back in the pool.

    A player still on court in an active match stays unavailable; completing
    that match releases them.
    """
    player = await get_player(session, player_id)
    player.deleted_at = None
    on_court = await get_on_court_player_ids(session, player.session_id, [player_id])
    player.is_available = player_id not in on_court
    await session.flush()
    logger.info(f"Restored player {player_id} in session {player.session_id}")
    return player


async def claim_players(session: AsyncSession, player_ids: Iterable[int]) -> int:
    """
    Mark players unavailable, but only those still available.

    Returns:
        Number of players actually claimed. Less than len(player_ids) means
        someone else took a player between our read and this write.
    """
    ids = list(player_ids)
    if not ids:
        return 0
    result = await session.execute(
        update(Player)
        .where(Player.id.in_(ids), Player.is_available.is_(True))
        .values(is_available=False)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount


async def release_players(
    session: AsyncSession, player_ids: Iterable[int], round_number: int
) -> int:
    """
    Return players to the pool after a match and count the match.

    Removed players are left alone; they come back through restore_player.

    Returns:
        Number of players updated
    """
    ids = list(player_ids)
    if not ids:
        return 0
    result = await session.execute(
        update(Player)
        .where(Player.id.in_(ids), Player.deleted_at.is_(None))
        .values(
            is_available=True,
            last_match_round=round_number,
            matches_played=Player.matches_played + 1,
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount


async def get_min_matches_played(session: AsyncSession, session_id: int) -> Optional[int]:
    """Lowest play count among non-deleted players, or None for an empty session."""
    result = await session.execute(
        select(func.min(Player.matches_played)).where(
            Player.session_id == session_id, Player.deleted_at.is_(None)
        )
    )
    return result.scalar()


async def get_on_court_player_ids(
    session: AsyncSession, session_id: int, player_ids: Optional[Iterable[int]] = None
) -> Set[int]:
    """
    Players of a session who are in an active match.

    Args:
        session: Database session
        session_id: Play session ID
        player_ids: Only check these players (all players when None)
    """
    query = (
        select(MatchPlayer.player_id)
        .join(Match, Match.id == MatchPlayer.match_id)
        .where(
            Match.session_id == session_id,
            Match.status == MatchStatus.ACTIVE.value,
        )
    )
    if player_ids is not None:
        query = query.where(MatchPlayer.player_id.in_(list(player_ids)))
    result = await session.execute(query)
    return set(result.scalars().all())
