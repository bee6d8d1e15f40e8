"""
SQLAlchemy ORM models for the pickleball rotation system.
"""

from typing import List
import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pickleball.database.db import Base


class MatchStatus(str, enum.Enum):
    """Match status enum."""

    ACTIVE = "active"
    COMPLETED = "completed"


class RelationshipType(str, enum.Enum):
    """How two players met in a match."""

    PARTNER = "partner"
    OPPONENT = "opponent"


class Session(Base):
    """A play event: one pool of players rotating across a fixed set of courts."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    court_count = Column(Integer, default=1, nullable=False)  # Simultaneous matches per round
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    players = relationship("Player", back_populates="session")
    matches = relationship("Match", back_populates="session")

    __table_args__ = (
        CheckConstraint("court_count >= 1", name="ck_sessions_court_count_positive"),
    )


class Player(Base):
    """A player registered in one session."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False)
    name = Column(String, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    matches_played = Column(Integer, default=0, nullable=False)
    last_match_round = Column(Integer, default=0, nullable=False)  # 0 = never played
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)  # Soft delete

    # Relationships
    session = relationship("Session", back_populates="players")
    match_entries = relationship("MatchPlayer", back_populates="player")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    __table_args__ = (
        CheckConstraint("matches_played >= 0", name="ck_players_matches_played_nonneg"),
        Index("idx_players_session", "session_id"),
        Index("idx_players_session_available", "session_id", "is_available"),
    )


class Match(Base):
    """One doubles match on one court in one round."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False)
    round_number = Column(Integer, nullable=False)
    status = Column(String(20), default=MatchStatus.ACTIVE.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    session = relationship("Session", back_populates="matches")
    match_players = relationship(
        "MatchPlayer",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchPlayer.id",
    )

    @property
    def team1_player_ids(self) -> List[int]:
        """Player IDs on team 1."""
        return [mp.player_id for mp in self.match_players if mp.team == 1]

    @property
    def team2_player_ids(self) -> List[int]:
        """Player IDs on team 2."""
        return [mp.player_id for mp in self.match_players if mp.team == 2]

    @property
    def player_ids(self) -> List[List[int]]:
        """Get player IDs as list of teams."""
        return [self.team1_player_ids, self.team2_player_ids]

    __table_args__ = (
        CheckConstraint("round_number >= 1", name="ck_matches_round_positive"),
        Index("idx_matches_session", "session_id"),
        Index("idx_matches_session_round", "session_id", "round_number"),
        Index("idx_matches_status", "status"),
    )


class MatchPlayer(Base):
    """Team assignment of one player in one match."""

    __tablename__ = "match_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    team = Column(Integer, nullable=False)  # 1 or 2

    match = relationship("Match", back_populates="match_players")
    player = relationship("Player", back_populates="match_entries")

    __table_args__ = (
        CheckConstraint("team IN (1, 2)", name="ck_match_players_team"),
        UniqueConstraint("match_id", "player_id", name="uq_match_players_match_player"),
        Index("idx_match_players_match", "match_id"),
        Index("idx_match_players_player", "player_id"),
    )


class PlayerHistory(Base):
    """How many times a player has partnered with / faced another player in a session.

    Stored in both directions (A -> B and B -> A) so lookups are always keyed by
    the subject player.
    """

    __tablename__ = "player_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    other_player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    relationship_type = Column(String(20), nullable=False)  # partner | opponent
    count = Column(Integer, default=0, nullable=False)
    last_round = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    player = relationship("Player", foreign_keys=[player_id])
    other_player = relationship("Player", foreign_keys=[other_player_id])

    __table_args__ = (
        UniqueConstraint(
            "session_id",
            "player_id",
            "other_player_id",
            "relationship_type",
            name="uq_player_history_pair",
        ),
        Index("idx_player_history_session_player", "session_id", "player_id"),
    )
