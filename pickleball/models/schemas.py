"""
Pydantic models for API request/response validation.
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    message: str


class CreateRoundRequest(BaseModel):
    """Request to generate the next round of a session."""

    round_number: Optional[int] = Field(default=None, ge=1)  # Defaults to current round + 1
    court_count: Optional[int] = Field(default=None, ge=1)  # Defaults to the session's court count


class AddPlayerRequest(BaseModel):
    """Request to add a player to a session."""

    name: str = Field(min_length=1)


class PlayerResponse(BaseModel):
    """Player in a session."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    name: str
    is_available: bool
    matches_played: int
    last_match_round: int
    deleted_at: Optional[datetime] = None


class PlayerWeightResponse(BaseModel):
    """A player with their selection weight (lower plays sooner)."""

    player: PlayerResponse
    weight: int


class MatchPlayerResponse(BaseModel):
    """Team assignment of a player in a match."""

    player_id: int
    name: str
    team: int


class MatchResponse(BaseModel):
    """A generated match with its team assignments."""

    id: int
    session_id: int
    round_number: int
    status: str
    created_at: Optional[datetime] = None
    team1: List[MatchPlayerResponse]
    team2: List[MatchPlayerResponse]


class RoundResponse(BaseModel):
    """Matches created (or found) for a round."""

    session_id: int
    round_number: int
    matches: List[MatchResponse]


class CurrentRoundResponse(BaseModel):
    session_id: int
    round_number: int


class PlayerHistoryResponse(BaseModel):
    """How often a player has partnered with / faced another player."""

    model_config = ConfigDict(from_attributes=True)

    other_player_id: int
    relationship_type: str
    count: int
    last_round: Optional[int] = None


def match_to_response(match) -> MatchResponse:
    """Build a MatchResponse from a Match loaded with its match_players."""
    teams = {1: [], 2: []}
    for mp in match.match_players:
        teams[mp.team].append(
            MatchPlayerResponse(
                player_id=mp.player_id,
                name=mp.player.name if mp.player else "",
                team=mp.team,
            )
        )
    return MatchResponse(
        id=match.id,
        session_id=match.session_id,
        round_number=match.round_number,
        status=match.status,
        created_at=match.created_at,
        team1=teams[1],
        team2=teams[2],
    )
