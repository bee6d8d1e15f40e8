"""Round generation and player weight route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from pickleball.api.routes import limiter
from pickleball.database.db import get_db_session
from pickleball.database.models import MatchStatus
from pickleball.models.schemas import (
    CreateRoundRequest,
    CurrentRoundResponse,
    MatchResponse,
    PlayerResponse,
    PlayerWeightResponse,
    RoundResponse,
    match_to_response,
)
from pickleball.services import round_service, weight_service
from pickleball.services.errors import (
    ConcurrentSelectionError,
    InsufficientPlayersError,
    PersistenceFailure,
    SessionNotFoundError,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/sessions/{session_id}/rounds", response_model=RoundResponse)
@limiter.limit("30/minute")
async def create_round(
    request: Request,
    session_id: int,
    round_request: Optional[CreateRoundRequest] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Generate the next round of matches for a session.

    Request body (optional):
        {
            "round_number": 3,  // Optional - defaults to current round + 1
            "court_count": 2    // Optional - defaults to the session's court count
        }

    Returns:
        RoundResponse with one match per court
    """
    round_request = round_request or CreateRoundRequest()
    try:
        matches = await round_service.create_round(
            session,
            session_id,
            round_number=round_request.round_number,
            court_count=round_request.court_count,
        )
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InsufficientPlayersError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConcurrentSelectionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceFailure:
        raise HTTPException(status_code=500, detail="Could not create round. Please try again.")

    return RoundResponse(
        session_id=session_id,
        round_number=matches[0].round_number,
        matches=[match_to_response(m) for m in matches],
    )


@router.get("/api/sessions/{session_id}/rounds/current", response_model=CurrentRoundResponse)
async def get_current_round(
    session_id: int,
    session: AsyncSession = Depends(get_db_session),
):
    """Get the highest round number played so far (0 before the first round)."""
    round_number = await round_service.get_current_round(session, session_id)
    return CurrentRoundResponse(session_id=session_id, round_number=round_number)


@router.get("/api/sessions/{session_id}/matches", response_model=List[MatchResponse])
async def list_session_matches(
    session_id: int,
    status: Optional[MatchStatus] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """List a session's matches, newest round first. Filter with ?status=active|completed."""
    matches = await round_service.get_session_matches(session, session_id, status=status)
    return [match_to_response(m) for m in matches]


@router.get(
    "/api/sessions/{session_id}/player-weights", response_model=List[PlayerWeightResponse]
)
async def get_player_weights(
    session_id: int,
    include_inactive: bool = False,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Get selection weights for a session's players, lowest (plays soonest) first.

    Query params: include_inactive (also list players currently on court).
    """
    try:
        weights = await weight_service.compute_player_weights(
            session, session_id, include_inactive=include_inactive
        )
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [
        PlayerWeightResponse(player=PlayerResponse.model_validate(pw.player), weight=pw.weight)
        for pw in weights
    ]
