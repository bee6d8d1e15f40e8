"""
Court and team assignment.

Given the players selected for a round and how often each pair has already
partnered / faced each other, split them into one match per court with two
teams of two, keeping repeat partnerships and repeat match-ups to a minimum.

Scoring (higher is better, 0 is a round of entirely fresh pairings):

    score = -sum over matches of
              PARTNER_PENALTY  * (partners(team1) + partners(team2))
            + OPPONENT_PENALTY * sum(opponents(a, b) for a in team1 for b in team2)

A group of four has exactly three distinct splits, so a single court is
solved exactly. With several courts the grouping itself is searched by
repeated shuffling; the best assignment seen is kept and the first one found
wins ties.

Nothing here touches the database.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

from pickleball.database.models import RelationshipType
from pickleball.utils.constants import (
    PLAYERS_PER_MATCH,
    PARTNER_PENALTY,
    OPPONENT_PENALTY,
    SINGLE_COURT_ATTEMPTS,
    MULTI_COURT_ATTEMPTS,
    MAX_ATTEMPTS,
)

logger = logging.getLogger(__name__)

PlayerKey = Hashable
Team = Tuple[PlayerKey, PlayerKey]

# Index pairs for the three ways to split four players into two teams of two
SPLITS = (
    ((0, 1), (2, 3)),
    ((0, 2), (1, 3)),
    ((0, 3), (1, 2)),
)


class HistoryMatrix:
    """Partner and opponent counts between pairs of players. Unknown pairs count 0."""

    def __init__(self):
        self._counts: Dict[Tuple[PlayerKey, PlayerKey, str], int] = {}

    @classmethod
    def from_records(cls, records: Iterable) -> "HistoryMatrix":
        """Build from PlayerHistory-like rows (player_id, other_player_id, relationship_type, count)."""
        matrix = cls()
        for record in records:
            matrix.set(
                record.player_id,
                record.other_player_id,
                record.relationship_type,
                record.count or 0,
            )
        return matrix

    def set(self, player: PlayerKey, other: PlayerKey, relationship: str, count: int) -> None:
        self._counts[(player, other, _relationship_value(relationship))] = count

    def record(self, player: PlayerKey, other: PlayerKey, relationship: str) -> None:
        """Count one more occurrence, in both directions."""
        rel = _relationship_value(relationship)
        for a, b in ((player, other), (other, player)):
            self._counts[(a, b, rel)] = self._counts.get((a, b, rel), 0) + 1

    def partner_count(self, player: PlayerKey, other: PlayerKey) -> int:
        return self._counts.get((player, other, RelationshipType.PARTNER.value), 0)

    def opponent_count(self, player: PlayerKey, other: PlayerKey) -> int:
        return self._counts.get((player, other, RelationshipType.OPPONENT.value), 0)

    def __len__(self) -> int:
        return len(self._counts)


def _relationship_value(relationship) -> str:
    return relationship.value if isinstance(relationship, RelationshipType) else str(relationship)


@dataclass
class PlannedMatch:
    team1: Team
    team2: Team
    score: int = 0

    @property
    def players(self) -> List[PlayerKey]:
        return [*self.team1, *self.team2]


@dataclass
class Assignment:
    matches: List[PlannedMatch] = field(default_factory=list)

    @property
    def score(self) -> int:
        return sum(m.score for m in self.matches)


def score_split(team1: Sequence[PlayerKey], team2: Sequence[PlayerKey], history: HistoryMatrix) -> int:
    """Score one match. 0 means nobody in it has played with or against each other before."""
    penalty = PARTNER_PENALTY * history.partner_count(team1[0], team1[1])
    penalty += PARTNER_PENALTY * history.partner_count(team2[0], team2[1])
    for a in team1:
        for b in team2:
            penalty += OPPONENT_PENALTY * history.opponent_count(a, b)
    return -penalty


def best_split(group: Sequence[PlayerKey], history: HistoryMatrix) -> PlannedMatch:
    """Evaluate all three team splits of four players and keep the first best."""
    if len(group) != PLAYERS_PER_MATCH:
        raise ValueError(f"A match needs exactly {PLAYERS_PER_MATCH} players, got {len(group)}")

    best: Optional[PlannedMatch] = None
    for (a, b), (c, d) in SPLITS:
        team1 = (group[a], group[b])
        team2 = (group[c], group[d])
        score = score_split(team1, team2, history)
        if best is None or score > best.score:
            best = PlannedMatch(team1=team1, team2=team2, score=score)
    return best


def score_assignment(matches: Iterable[PlannedMatch], history: HistoryMatrix) -> int:
    """Total score of a full assignment, recomputed from the history."""
    return sum(score_split(m.team1, m.team2, history) for m in matches)


def attempt_budget(court_count: int, attempts: Optional[int] = None) -> int:
    if attempts is None:
        attempts = SINGLE_COURT_ATTEMPTS if court_count == 1 else MULTI_COURT_ATTEMPTS
    return max(1, min(attempts, MAX_ATTEMPTS))


def optimize_matches(
    players: Sequence[PlayerKey],
    court_count: int,
    history: HistoryMatrix,
    rng: Optional[random.Random] = None,
    attempts: Optional[int] = None,
) -> Assignment:
    """
    Assign players to courts and teams.

    Args:
        players: Exactly court_count * 4 distinct player keys
        court_count: Number of matches to build
        history: Partner / opponent counts among these players
        rng: Random source for the grouping search (seed it in tests)
        attempts: Override the search budget (capped at MAX_ATTEMPTS)

    Returns:
        Best Assignment found
    """
    if court_count < 1:
        raise ValueError("court_count must be at least 1")
    if len(players) != court_count * PLAYERS_PER_MATCH:
        raise ValueError(
            f"Expected {court_count * PLAYERS_PER_MATCH} players for {court_count} court(s), "
            f"got {len(players)}"
        )
    if len(set(players)) != len(players):
        raise ValueError("Players must be distinct")

    rng = rng or random.Random()
    budget = attempt_budget(court_count, attempts)
    pool = list(players)
    best: Optional[Assignment] = None
    tried = 0

    for tried in range(1, budget + 1):
        if court_count > 1:
            rng.shuffle(pool)
        candidate = Assignment(
            matches=[
                best_split(pool[i:i + PLAYERS_PER_MATCH], history)
                for i in range(0, len(pool), PLAYERS_PER_MATCH)
            ]
        )
        if best is None or candidate.score > best.score:
            best = candidate
        if best.score == 0:
            # Nothing beats an all-fresh round
            break
        if court_count == 1:
            # One group of four: the three-way split above is already exact
            break

    logger.debug(
        f"Assignment search for {court_count} court(s): score {best.score} "
        f"after {tried} of {budget} attempt(s)"
    )
    return best
