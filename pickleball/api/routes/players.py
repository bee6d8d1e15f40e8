"""Player registry route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from pickleball.database.db import get_db_session
from pickleball.models.schemas import (
    AddPlayerRequest,
    PlayerHistoryResponse,
    PlayerResponse,
)
from pickleball.services import history_service, player_service
from pickleball.services.errors import PlayerNotFoundError, SessionNotFoundError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/sessions/{session_id}/players", response_model=List[PlayerResponse])
async def list_players(
    session_id: int,
    include_deleted: bool = False,
    session: AsyncSession = Depends(get_db_session),
):
    """List a session's players. Removed players only with ?include_deleted=true."""
    try:
        await player_service.get_play_session(session, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    players = await player_service.list_players(
        session, session_id, include_deleted=include_deleted
    )
    return [PlayerResponse.model_validate(p) for p in players]


@router.post("/api/sessions/{session_id}/players", response_model=PlayerResponse)
async def add_player(
    session_id: int,
    player_request: AddPlayerRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Add a player to a session.

    Request body:
        {
            "name": "Sam"
        }
    """
    try:
        player = await player_service.add_player(session, session_id, player_request.name)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PlayerResponse.model_validate(player)


@router.delete("/api/players/{player_id}", response_model=PlayerResponse)
async def remove_player(
    player_id: int,
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a player from future rounds (soft delete)."""
    try:
        player = await player_service.remove_player(session, player_id)
    except PlayerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PlayerResponse.model_validate(player)


@router.post("/api/players/{player_id}/restore", response_model=PlayerResponse)
async def restore_player(
    player_id: int,
    session: AsyncSession = Depends(get_db_session),
):
    """Bring a removed player back into the pool."""
    try:
        player = await player_service.restore_player(session, player_id)
    except PlayerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PlayerResponse.model_validate(player)


@router.get("/api/players/{player_id}/history", response_model=List[PlayerHistoryResponse])
async def get_player_history(
    player_id: int,
    session: AsyncSession = Depends(get_db_session),
):
    """Partner and opponent counts for a player, most repeated first."""
    try:
        player = await player_service.get_player(session, player_id)
    except PlayerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    records = await history_service.get_player_history(session, player.session_id, player_id)
    return [PlayerHistoryResponse.model_validate(r) for r in records]
