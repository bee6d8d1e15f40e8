"""
Match completion.

Finishing a match puts its four players back in the pool, counts the match
for each of them and records the two partnerships and four match-ups it
produced. The active -> completed transition is the single source of truth:
completing a match twice changes nothing the second time.
"""

import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pickleball.database.models import Match, MatchStatus
from pickleball.services import history_service, player_service
from pickleball.services.errors import PersistenceFailure
from pickleball.services.round_service import get_match
from pickleball.services.session_locks import session_lock

logger = logging.getLogger(__name__)


async def _mark_completed(session: AsyncSession, match_id: int) -> bool:
    """Flip active -> completed. False if someone else already did."""
    result = await session.execute(
        update(Match)
        .where(Match.id == match_id, Match.status == MatchStatus.ACTIVE.value)
        .values(status=MatchStatus.COMPLETED.value)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


async def _complete_match_locked(session: AsyncSession, match: Match) -> Match:
    if match.status == MatchStatus.COMPLETED.value or not await _mark_completed(session, match.id):
        logger.warning(f"Match {match.id} is already completed; nothing to do")
        return match

    team1 = match.team1_player_ids
    team2 = match.team2_player_ids

    released = await player_service.release_players(session, team1 + team2, match.round_number)
    if released != len(team1) + len(team2):
        logger.info(
            f"Match {match.id}: {len(team1) + len(team2) - released} removed player(s) left out of the pool"
        )

    await history_service.record_pairings(
        session, match.session_id, team1, team2, match.round_number
    )

    await session.commit()
    logger.info(
        f"Completed match {match.id} (session {match.session_id}, round {match.round_number})"
    )
    return await get_match(session, match.id)


async def complete_match(session: AsyncSession, match_id: int) -> Match:
    """
    Complete a match and release its players.

    Args:
        session: Database session
        match_id: Match ID

    Returns:
        The completed match with its team assignments

    Raises:
        MatchNotFoundError: If the match does not exist
        PersistenceFailure: If a database read or write fails
    """
    try:
        match = await get_match(session, match_id)
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error loading match {match_id}: {e}", exc_info=True)
        raise PersistenceFailure(f"Could not complete match {match_id}") from e

    async with session_lock(match.session_id):
        try:
            # Re-read under the lock; another completion may have just finished
            match = await get_match(session, match_id)
            return await _complete_match_locked(session, match)
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Error completing match {match_id}: {e}", exc_info=True)
            raise PersistenceFailure(f"Could not complete match {match_id}") from e
        except Exception:
            await session.rollback()
            raise
