"""
Round generation.

A round picks the least-played available players, splits them across the
session's courts with the fewest repeat pairings, stores the matches and
takes the players out of the pool.

Everything for one round happens under the session lock and inside one
transaction, so the round is either written completely or not at all.
Calls are re-entrant: asking again for a round that already exists returns
the stored matches instead of creating a second set.
"""

import logging
import random
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pickleball.database.models import Match, MatchPlayer, MatchStatus
from pickleball.services import history_service, player_service
from pickleball.services.errors import (
    ConcurrentSelectionError,
    MatchNotFoundError,
    PersistenceFailure,
)
from pickleball.services.match_optimizer import Assignment, optimize_matches
from pickleball.services.player_selector import players_needed, select_players
from pickleball.services.session_locks import session_lock
from pickleball.services.weight_service import compute_player_weights

logger = logging.getLogger(__name__)


def _with_players(query):
    return query.options(
        selectinload(Match.match_players).selectinload(MatchPlayer.player)
    ).execution_options(populate_existing=True)


async def get_current_round(session: AsyncSession, session_id: int) -> int:
    """Highest round number stored for a session, 0 if no round has been played."""
    result = await session.execute(
        select(func.max(Match.round_number)).where(Match.session_id == session_id)
    )
    return result.scalar() or 0


async def get_match(session: AsyncSession, match_id: int) -> Match:
    """
    Get a match with its team assignments.

    Raises:
        MatchNotFoundError: If the match does not exist
    """
    result = await session.execute(_with_players(select(Match).where(Match.id == match_id)))
    match = result.scalar_one_or_none()
    if not match:
        raise MatchNotFoundError(f"Match {match_id} not found")
    return match


async def get_session_matches(
    session: AsyncSession,
    session_id: int,
    status: Optional[MatchStatus] = None,
    round_number: Optional[int] = None,
) -> List[Match]:
    """
    Get the matches of a session with their players, newest round first.

    Args:
        session: Database session
        session_id: Play session ID
        status: Only matches in this status
        round_number: Only matches of this round
    """
    query = select(Match).where(Match.session_id == session_id)
    if status is not None:
        query = query.where(Match.status == status.value)
    if round_number is not None:
        query = query.where(Match.round_number == round_number)
    result = await session.execute(
        _with_players(query.order_by(Match.round_number.desc(), Match.id))
    )
    return list(result.scalars().all())


async def reconcile_availability(session: AsyncSession, session_id: int) -> int:
    """
    Take players who are on court in an active match out of the pool.

    Repairs the state a crashed or half-applied round can leave behind.

    Returns:
        Number of players corrected
    """
    on_court = await player_service.get_on_court_player_ids(session, session_id)
    fixed = await player_service.claim_players(session, on_court)
    if fixed:
        logger.warning(
            f"Session {session_id}: {fixed} player(s) in active matches were marked available; corrected"
        )
    return fixed


async def _persist_assignment(
    session: AsyncSession,
    session_id: int,
    round_number: int,
    assignment: Assignment,
) -> List[Match]:
    matches = []
    for planned in assignment.matches:
        match = Match(
            session_id=session_id,
            round_number=round_number,
            status=MatchStatus.ACTIVE.value,
        )
        match.match_players = [
            MatchPlayer(player_id=planned.team1[0], team=1),
            MatchPlayer(player_id=planned.team1[1], team=1),
            MatchPlayer(player_id=planned.team2[0], team=2),
            MatchPlayer(player_id=planned.team2[1], team=2),
        ]
        session.add(match)
        matches.append(match)
    await session.flush()
    return matches


async def _create_round_locked(
    session: AsyncSession,
    session_id: int,
    round_number: Optional[int],
    court_count: Optional[int],
    rng: Optional[random.Random],
) -> List[Match]:
    play_session = await player_service.get_play_session(session, session_id)

    if court_count is None:
        court_count = play_session.court_count or 1
    need = players_needed(court_count)

    if round_number is None:
        round_number = await get_current_round(session, session_id) + 1
    elif round_number < 1:
        raise ValueError("round_number must be at least 1")

    existing = await get_session_matches(session, session_id, round_number=round_number)
    if existing:
        logger.info(
            f"Round {round_number} already exists in session {session_id} "
            f"({len(existing)} match(es)); returning it"
        )
        if await reconcile_availability(session, session_id):
            await session.commit()
        return existing

    await reconcile_availability(session, session_id)

    weights = await compute_player_weights(session, session_id, rng=rng)
    selected = select_players(weights, need, rng=rng)
    selected_ids = [p.id for p in selected]

    history = await history_service.load_history(session, session_id, selected_ids)
    assignment = optimize_matches(selected_ids, court_count, history, rng=rng)

    await _persist_assignment(session, session_id, round_number, assignment)

    claimed = await player_service.claim_players(session, selected_ids)
    if claimed != len(selected_ids):
        raise ConcurrentSelectionError(
            f"Only {claimed} of {len(selected_ids)} selected players were still available"
        )

    await session.commit()
    logger.info(
        f"Created round {round_number} in session {session_id}: "
        f"{court_count} match(es), pairing score {assignment.score}"
    )
    return await get_session_matches(session, session_id, round_number=round_number)


async def create_round(
    session: AsyncSession,
    session_id: int,
    round_number: Optional[int] = None,
    court_count: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> List[Match]:
    """
    Generate and store the next round of a session.

    Args:
        session: Database session
        session_id: Play session ID
        round_number: Round to create; defaults to the current round + 1
        court_count: Matches to create; defaults to the session's court count
        rng: Random source for tie-breaks and the assignment search

    Returns:
        The round's matches with their team assignments

    Raises:
        SessionNotFoundError: If the session does not exist
        InsufficientPlayersError: If the pool cannot fill every court (nothing is written)
        ConcurrentSelectionError: If a selected player was claimed by another round
        PersistenceFailure: If a database read or write fails
        ValueError: If court_count or round_number is below 1
    """
    async with session_lock(session_id):
        try:
            return await _create_round_locked(
                session, session_id, round_number, court_count, rng
            )
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Error creating round in session {session_id}: {e}", exc_info=True)
            raise PersistenceFailure(f"Could not create round in session {session_id}") from e
        except Exception:
            await session.rollback()
            raise
