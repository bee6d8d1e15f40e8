"""Match completion route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from pickleball.database.db import get_db_session
from pickleball.models.schemas import MatchResponse, match_to_response
from pickleball.services import completion_service, round_service
from pickleball.services.errors import MatchNotFoundError, PersistenceFailure

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches/{match_id}", response_model=MatchResponse)
async def get_match(
    match_id: int,
    session: AsyncSession = Depends(get_db_session),
):
    """Get a match with its team assignments."""
    try:
        match = await round_service.get_match(session, match_id)
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return match_to_response(match)


@router.post("/api/matches/{match_id}/complete", response_model=MatchResponse)
async def complete_match(
    match_id: int,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Complete a match: release its players and record partners/opponents.

    Completing an already-completed match returns it unchanged.
    """
    try:
        match = await completion_service.complete_match(session, match_id)
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceFailure:
        raise HTTPException(status_code=500, detail="Could not complete match. Please try again.")
    return match_to_response(match)
