"""
Tests for round generation.

Covers selection from the pool, the insufficient-players guard, match and
team persistence, availability updates, re-running a round, repairing stale
availability and serialising concurrent calls on one session.
"""

import asyncio
import random

import pytest
import pytest_asyncio
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pickleball.database.models import (
    Session,
    Player,
    Match,
    MatchPlayer,
    MatchStatus,
    RelationshipType,
)
from pickleball.services import history_service, player_service, round_service
from pickleball.services.errors import (
    ConcurrentSelectionError,
    InsufficientPlayersError,
    SessionNotFoundError,
)
from pickleball.utils.datetime_utils import utcnow


async def _create_session(db_session, court_count=1):
    """Helper: create a play session, return its id."""
    play_session = Session(court_count=court_count)
    db_session.add(play_session)
    await db_session.flush()
    session_id = play_session.id
    await db_session.commit()
    return session_id


async def _add_players(db_session, session_id, count, matches_played=0):
    """Helper: add players directly, return their ids."""
    ids = []
    for i in range(count):
        player = Player(
            session_id=session_id,
            name=f"Player {len(ids) + 1}-{matches_played}",
            matches_played=matches_played,
        )
        db_session.add(player)
        await db_session.flush()
        ids.append(player.id)
    await db_session.commit()
    return ids


async def _reload_players(db_session, session_id):
    result = await db_session.execute(
        select(Player)
        .where(Player.session_id == session_id)
        .order_by(Player.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _count(db_session, model):
    result = await db_session.execute(select(func.count()).select_from(model))
    return result.scalar()


@pytest_asyncio.fixture
async def four_player_session(db_session):
    session_id = await _create_session(db_session, court_count=1)
    player_ids = await _add_players(db_session, session_id, 4)
    return session_id, player_ids


# ──────────────────────────────────────────────────────────────
# Insufficient players
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_too_few_players_creates_nothing(db_session):
    """3 available players, 1 court: fails and writes no matches."""
    session_id = await _create_session(db_session)
    await _add_players(db_session, session_id, 3)

    with pytest.raises(InsufficientPlayersError) as exc_info:
        await round_service.create_round(db_session, session_id)

    assert exc_info.value.required == 4
    assert await _count(db_session, Match) == 0
    assert await _count(db_session, MatchPlayer) == 0
    players = await _reload_players(db_session, session_id)
    assert all(p.is_available for p in players)


@pytest.mark.asyncio
async def test_unavailable_and_removed_players_do_not_count(db_session):
    session_id = await _create_session(db_session)
    ids = await _add_players(db_session, session_id, 5)

    players = await _reload_players(db_session, session_id)
    players[0].is_available = False
    players[1].deleted_at = utcnow()
    await db_session.commit()

    with pytest.raises(InsufficientPlayersError):
        await round_service.create_round(db_session, session_id)
    assert await _count(db_session, Match) == 0


@pytest.mark.asyncio
async def test_unknown_session(db_session):
    with pytest.raises(SessionNotFoundError):
        await round_service.create_round(db_session, 9999)


@pytest.mark.asyncio
async def test_deleted_session(db_session):
    session_id = await _create_session(db_session)
    await _add_players(db_session, session_id, 4)
    result = await db_session.execute(select(Session).where(Session.id == session_id))
    result.scalar_one().deleted_at = utcnow()
    await db_session.commit()

    with pytest.raises(SessionNotFoundError):
        await round_service.create_round(db_session, session_id)


@pytest.mark.asyncio
async def test_invalid_court_count(four_player_session, db_session):
    session_id, _ = four_player_session
    with pytest.raises(ValueError, match="court_count"):
        await round_service.create_round(db_session, session_id, court_count=0)


# ──────────────────────────────────────────────────────────────
# Creating rounds
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_single_court_round(four_player_session, db_session):
    session_id, player_ids = four_player_session

    matches = await round_service.create_round(db_session, session_id, rng=random.Random(1))

    assert len(matches) == 1
    match = matches[0]
    assert match.status == MatchStatus.ACTIVE.value
    assert match.round_number == 1
    assert len(match.match_players) == 4
    assert len(match.team1_player_ids) == 2
    assert len(match.team2_player_ids) == 2
    assert sorted(match.team1_player_ids + match.team2_player_ids) == sorted(player_ids)

    players = await _reload_players(db_session, session_id)
    assert not any(p.is_available for p in players)


@pytest.mark.asyncio
async def test_two_courts_exact_pool(db_session):
    """8 available players, 2 courts: 2 matches, 8 MatchPlayer rows, 8 players unavailable."""
    session_id = await _create_session(db_session, court_count=2)
    await _add_players(db_session, session_id, 8)

    matches = await round_service.create_round(db_session, session_id, rng=random.Random(2))

    assert len(matches) == 2
    assert await _count(db_session, Match) == 2
    assert await _count(db_session, MatchPlayer) == 8
    for match in matches:
        assert sorted(mp.team for mp in match.match_players) == [1, 1, 2, 2]
    all_ids = [mp.player_id for m in matches for mp in m.match_players]
    assert len(set(all_ids)) == 8

    players = await _reload_players(db_session, session_id)
    assert sum(1 for p in players if not p.is_available) == 8


@pytest.mark.asyncio
async def test_court_count_override(db_session):
    session_id = await _create_session(db_session, court_count=3)
    await _add_players(db_session, session_id, 8)

    matches = await round_service.create_round(db_session, session_id, court_count=2)

    assert len(matches) == 2


@pytest.mark.asyncio
async def test_least_played_players_selected(db_session):
    session_id = await _create_session(db_session)
    rested = await _add_players(db_session, session_id, 4, matches_played=1)
    tired = await _add_players(db_session, session_id, 3, matches_played=4)

    matches = await round_service.create_round(db_session, session_id, rng=random.Random(3))

    selected = {mp.player_id for mp in matches[0].match_players}
    assert selected == set(rested)
    assert not selected & set(tired)


@pytest.mark.asyncio
async def test_removed_players_never_selected(db_session):
    session_id = await _create_session(db_session)
    ids = await _add_players(db_session, session_id, 5)
    await player_service.remove_player(db_session, ids[0])
    await db_session.commit()

    matches = await round_service.create_round(db_session, session_id)

    assert ids[0] not in {mp.player_id for mp in matches[0].match_players}


@pytest.mark.asyncio
async def test_round_numbers_advance(db_session):
    session_id = await _create_session(db_session)
    await _add_players(db_session, session_id, 8)

    first = await round_service.create_round(db_session, session_id)
    second = await round_service.create_round(db_session, session_id)

    assert first[0].round_number == 1
    assert second[0].round_number == 2
    assert await round_service.get_current_round(db_session, session_id) == 2
    # Nobody is on two courts at once
    first_ids = {mp.player_id for mp in first[0].match_players}
    second_ids = {mp.player_id for mp in second[0].match_players}
    assert not first_ids & second_ids


@pytest.mark.asyncio
async def test_pairings_avoid_repeat_partners(four_player_session, db_session):
    session_id, ids = four_player_session
    for _ in range(3):
        await history_service.upsert_history(
            db_session, session_id, ids[0], ids[1], RelationshipType.PARTNER, 1
        )
        await history_service.upsert_history(
            db_session, session_id, ids[1], ids[0], RelationshipType.PARTNER, 1
        )
    await db_session.commit()

    matches = await round_service.create_round(db_session, session_id, rng=random.Random(4))

    match = matches[0]
    assert {ids[0], ids[1]} != set(match.team1_player_ids)
    assert {ids[0], ids[1]} != set(match.team2_player_ids)


# ──────────────────────────────────────────────────────────────
# Re-running and repairing
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_rerunning_a_round_returns_existing_matches(db_session):
    session_id = await _create_session(db_session)
    await _add_players(db_session, session_id, 8)

    first = await round_service.create_round(db_session, session_id, round_number=1)
    again = await round_service.create_round(db_session, session_id, round_number=1)

    assert [m.id for m in again] == [m.id for m in first]
    assert await _count(db_session, Match) == 1


@pytest.mark.asyncio
async def test_stale_availability_is_repaired(db_session):
    """A player left 'available' while in an active match is not picked again."""
    session_id = await _create_session(db_session)
    ids = await _add_players(db_session, session_id, 8)

    match = Match(session_id=session_id, round_number=1, status=MatchStatus.ACTIVE.value)
    match.match_players = [
        MatchPlayer(player_id=ids[0], team=1),
        MatchPlayer(player_id=ids[1], team=1),
        MatchPlayer(player_id=ids[2], team=2),
        MatchPlayer(player_id=ids[3], team=2),
    ]
    db_session.add(match)
    await db_session.commit()

    matches = await round_service.create_round(db_session, session_id)

    assert matches[0].round_number == 2
    assert {mp.player_id for mp in matches[0].match_players} == set(ids[4:])
    players = await _reload_players(db_session, session_id)
    assert not any(p.is_available for p in players)


@pytest.mark.asyncio
async def test_lost_claim_rolls_back_round(four_player_session, db_session, monkeypatch):
    session_id, _ = four_player_session

    async def fake_claim_players(session, player_ids):
        return 3

    monkeypatch.setattr(player_service, "claim_players", fake_claim_players)

    with pytest.raises(ConcurrentSelectionError):
        await round_service.create_round(db_session, session_id)

    assert await _count(db_session, Match) == 0
    assert await _count(db_session, MatchPlayer) == 0


@pytest.mark.asyncio
async def test_concurrent_rounds_do_not_share_players(test_engine, db_session):
    """Two callers asking for a round at once get two different rounds."""
    session_id = await _create_session(db_session)
    await _add_players(db_session, session_id, 8)

    maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async def generate():
        async with maker() as session:
            matches = await round_service.create_round(session, session_id)
            return matches[0].round_number, {mp.player_id for mp in matches[0].match_players}

    (round_a, players_a), (round_b, players_b) = await asyncio.gather(generate(), generate())

    assert {round_a, round_b} == {1, 2}
    assert not players_a & players_b
    assert await _count(db_session, Match) == 2


# ──────────────────────────────────────────────────────────────
# Listing
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_get_session_matches_filters_by_status(db_session):
    session_id = await _create_session(db_session)
    await _add_players(db_session, session_id, 8)
    await round_service.create_round(db_session, session_id)
    await round_service.create_round(db_session, session_id)

    active = await round_service.get_session_matches(
        db_session, session_id, status=MatchStatus.ACTIVE
    )
    completed = await round_service.get_session_matches(
        db_session, session_id, status=MatchStatus.COMPLETED
    )

    assert [m.round_number for m in active] == [2, 1]
    assert completed == []


@pytest.mark.asyncio
async def test_current_round_starts_at_zero(db_session):
    session_id = await _create_session(db_session)
    assert await round_service.get_current_round(db_session, session_id) == 0
