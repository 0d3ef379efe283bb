"""
SQLAlchemy ORM models for scoutrank.

This module defines all database tables and their relationships.
The schema is designed around a canonical player identity system
where each athlete has one record regardless of how many providers
report on them.

Key design decisions:
- Provider IDs live in player_external_ids, one row per (player, provider)
- Records that cannot be linked confidently go to a review queue
- Provider profile payloads are cached per (player, provider) and merged
  into the canonical record by field precedence
- Every disagreement between a provider and the canonical record is logged
- Rolling stats and ratings are derived tables, regenerated on every run

Tables:
- competitions / teams: Competition and club master data
- players: Canonical player records
- player_external_ids: (provider, provider id) -> player links
- unresolved_external_players: Provider records awaiting manual review
- provider_player_profiles: Latest raw + normalized payload per provider
- provider_player_aggregates: Provider-reported season aggregates
- player_field_conflicts: Field disagreements between providers
- appearances: Per-match statistics
- player_rolling_stats: Windowed totals, per-90 rates and features
- rating_profiles: Feature weights per position group
- player_ratings / competition_ratings: Computed ratings
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

POSITION_GROUP_CHECK = "position_group IN ('GK', 'DEF', 'MID', 'ATT')"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Competition Models
# =============================================================================

class Competition(Base):
    """
    A league or cup season from a provider.

    The tier drives the level-score adjustment of every player rated in
    this competition. Untiered competitions are treated as the lowest tier.
    """
    __tablename__ = "competitions"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_league_id: Mapped[str] = mapped_column(String(50), nullable=False)
    season: Mapped[str] = mapped_column(String(20), nullable=False)

    # 'Platinum', 'Diamond', 'Elite', 'Gold', 'Silver', 'Bronze'
    tier: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    teams: Mapped[list["Team"]] = relationship(back_populates="competition")

    __table_args__ = (
        UniqueConstraint("provider", "provider_league_id", "season", name="uq_competition_provider_season"),
        Index("idx_competitions_country", "country"),
        Index("idx_competitions_tier", "tier"),
    )

    def __repr__(self) -> str:
        return f"<Competition(id={self.id}, name='{self.name}', tier={self.tier})>"


class Team(Base):
    """A club within a competition season."""
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    competition_id: Mapped[int] = mapped_column(ForeignKey("competitions.id", ondelete="CASCADE"))
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_team_id: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    competition: Mapped["Competition"] = relationship(back_populates="teams")

    __table_args__ = (
        UniqueConstraint("provider", "provider_team_id", "competition_id", name="uq_team_provider_competition"),
        Index("idx_teams_competition", "competition_id"),
    )

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name='{self.name}')>"


# =============================================================================
# Player Identity Models
# =============================================================================

class Player(Base):
    """
    Canonical player record.

    Exactly one row per real athlete. Created the first time a provider
    record cannot be matched to anyone, and afterwards only changed by
    the merge engine (or a manual conflict resolution).

    field_sources records which provider supplied each canonical field
    value, so a later merge can compare precedence against it.
    """
    __tablename__ = "players"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    name_normalized: Mapped[str] = mapped_column(String(255), nullable=False)

    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    nationality: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    height_cm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    weight_kg: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    preferred_foot: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # 'left', 'right', 'both'
    photo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    position: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    position_group: Mapped[str] = mapped_column(String(3), nullable=False, default="MID")

    team_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    competition_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("competitions.id", ondelete="SET NULL"), nullable=True
    )

    field_sources: Mapped[dict[str, str]] = mapped_column(JSONType, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    external_ids: Mapped[list["PlayerExternalId"]] = relationship(
        back_populates="player", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(POSITION_GROUP_CHECK, name="ck_players_position_group"),
        Index("idx_players_name_normalized", "name_normalized"),
        Index("idx_players_team", "team_id"),
        Index("idx_players_competition", "competition_id"),
        Index("idx_players_position_group", "position_group"),
    )

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name='{self.name}')>"


class PlayerExternalId(Base):
    """
    Link from a provider's native player ID to a canonical player.

    Both (provider, provider_player_id) and (player_id, provider) are
    unique: a provider ID points at one player, and a player has at most
    one ID per provider. Re-resolution updates the row in place.
    """
    __tablename__ = "player_external_ids"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"))
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_player_id: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_team_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    provider_competition_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    confidence: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    player: Mapped["Player"] = relationship(back_populates="external_ids")

    __table_args__ = (
        UniqueConstraint("provider", "provider_player_id", name="uq_external_id_provider_player"),
        UniqueConstraint("player_id", "provider", name="uq_external_id_player_provider"),
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerExternalId(provider='{self.provider}', "
            f"id='{self.provider_player_id}', player={self.player_id})>"
        )


class UnresolvedExternalPlayer(Base):
    """
    Review queue for provider records that couldn't be auto-linked.

    A record lands here when the resolver finds candidates but none is
    confident and clearly ahead of the others. The candidate IDs are
    stored so the reviewer can pick one.

    Resolution options:
    - 'matched': Linked to an existing player
    - 'new_player': Created a new canonical player
    - 'ignored': Skipped
    """
    __tablename__ = "unresolved_external_players"

    id: Mapped[int] = mapped_column(primary_key=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_player_id: Mapped[str] = mapped_column(String(50), nullable=False)
    scraped_name: Mapped[str] = mapped_column(String(255), nullable=False)

    payload: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    candidate_player_ids: Mapped[Optional[list[int]]] = mapped_column(JSONType, nullable=True)
    top_confidence: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 4), nullable=True)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="pending")
    resolved_player_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("players.id", ondelete="SET NULL"), nullable=True
    )
    resolved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint("provider", "provider_player_id", name="uq_unresolved_provider_player"),
        Index("idx_unresolved_status", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<UnresolvedExternalPlayer(name='{self.scraped_name}', status='{self.status}')>"


# =============================================================================
# Provider Data Models
# =============================================================================

class ProviderPlayerProfile(Base):
    """
    Latest profile payload fetched from a provider for a player.

    Overwritten wholesale on every enrichment pass. This is merge input,
    not a source of truth.
    """
    __tablename__ = "provider_player_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"))
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    profile: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    normalized: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("player_id", "provider", name="uq_provider_profile_player"),
    )


class ProviderPlayerAggregate(Base):
    """Aggregated stats as reported by a provider (season, 365 days or career)."""
    __tablename__ = "provider_player_aggregates"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"))
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    window: Mapped[str] = mapped_column(String(20), nullable=False)  # '365', 'season', 'career'
    competition_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("competitions.id", ondelete="SET NULL"), nullable=True
    )
    season: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    from_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    to_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    appearances: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    totals: Mapped[Optional[dict[str, float]]] = mapped_column(JSONType, nullable=True)
    per90: Mapped[Optional[dict[str, float]]] = mapped_column(JSONType, nullable=True)
    additional_stats: Mapped[Optional[dict[str, float]]] = mapped_column(JSONType, nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("player_id", "provider", "window", name="uq_provider_aggregate_window"),
    )


class PlayerFieldConflict(Base):
    """
    A disagreement between the canonical value and a provider's value.

    One row per (player, field, provider). A later merge that disagrees
    again overwrites the values and reopens the conflict.
    """
    __tablename__ = "player_field_conflicts"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"))
    field: Mapped[str] = mapped_column(String(50), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)

    canonical_value: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    provider_value: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)

    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_value: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    resolved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("player_id", "field", "provider", name="uq_conflict_player_field_provider"),
        Index("idx_conflicts_player_resolved", "player_id", "resolved"),
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerFieldConflict(player={self.player_id}, field='{self.field}', "
            f"provider='{self.provider}', resolved={self.resolved})>"
        )


# =============================================================================
# Match Statistics Models
# =============================================================================

class Appearance(Base):
    """
    One player's statistics for one match.

    stats holds the counting stats by snake_case name (see
    ratings.aggregate.AppearanceStats). Rows with zero minutes are never
    stored.
    """
    __tablename__ = "appearances"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"))
    competition_id: Mapped[int] = mapped_column(ForeignKey("competitions.id", ondelete="CASCADE"))
    team_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_fixture_id: Mapped[str] = mapped_column(String(50), nullable=False)

    match_date: Mapped[date] = mapped_column(Date, nullable=False)
    minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    stats: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_fixture_id", "player_id", name="uq_appearance_provider_fixture_player"
        ),
        Index("idx_appearances_player_date", "player_id", "match_date"),
        Index("idx_appearances_competition_date", "competition_id", "match_date"),
        CheckConstraint("minutes > 0", name="ck_appearances_minutes_positive"),
    )

    def __repr__(self) -> str:
        return f"<Appearance(player={self.player_id}, date={self.match_date}, minutes={self.minutes})>"


class PlayerRollingStats(Base):
    """Persisted rolling window for a player: regenerated on every rating run."""
    __tablename__ = "player_rolling_stats"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"))
    competition_id: Mapped[int] = mapped_column(ForeignKey("competitions.id", ondelete="CASCADE"))
    from_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_date: Mapped[date] = mapped_column(Date, nullable=False)
    minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    totals: Mapped[dict[str, float]] = mapped_column(JSONType, nullable=False)
    per90: Mapped[dict[str, float]] = mapped_column(JSONType, nullable=False)
    rates: Mapped[dict[str, float]] = mapped_column(JSONType, nullable=False)
    features: Mapped[dict[str, float]] = mapped_column(JSONType, nullable=False)
    # Form window: minutes, date span, totals and features of the last N matches
    last5: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint("player_id", "competition_id", name="uq_rolling_stats_player_competition"),
    )


# =============================================================================
# Rating Models
# =============================================================================

class RatingProfile(Base):
    """
    Feature weights for one position group.

    invert_metrics lists features where lower is better (cards, goals
    conceded). Only changed through an explicit administrative update.
    """
    __tablename__ = "rating_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    position_group: Mapped[str] = mapped_column(String(3), nullable=False, unique=True)
    weights: Mapped[dict[str, float]] = mapped_column(JSONType, nullable=False)
    invert_metrics: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint(POSITION_GROUP_CHECK, name="ck_rating_profiles_position_group"),
    )

    def __repr__(self) -> str:
        return f"<RatingProfile(group='{self.position_group}', metrics={len(self.weights or {})})>"


class PlayerRating(Base):
    """Computed rating for a player in a competition."""
    __tablename__ = "player_ratings"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"))
    competition_id: Mapped[int] = mapped_column(ForeignKey("competitions.id", ondelete="CASCADE"))
    position_group: Mapped[str] = mapped_column(String(3), nullable=False)

    rating365: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_last5: Mapped[int] = mapped_column(Integer, nullable=False)
    tier: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    level_score: Mapped[int] = mapped_column(Integer, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint("player_id", "competition_id", name="uq_player_rating_player_competition"),
        Index("idx_player_ratings_competition_rating", "competition_id", "rating365"),
        Index("idx_player_ratings_group_rating", "position_group", "rating365"),
        CheckConstraint("rating365 BETWEEN 0 AND 100", name="ck_player_ratings_rating365"),
        CheckConstraint("level_score BETWEEN 0 AND 100", name="ck_player_ratings_level_score"),
    )

    def __repr__(self) -> str:
        return f"<PlayerRating(player={self.player_id}, rating365={self.rating365}, level={self.level_score})>"


class CompetitionRating(Base):
    """Strength score of a competition from its top rated players."""
    __tablename__ = "competition_ratings"

    id: Mapped[int] = mapped_column(primary_key=True)
    competition_id: Mapped[int] = mapped_column(
        ForeignKey("competitions.id", ondelete="CASCADE"), unique=True
    )
    tier: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    strength_score: Mapped[int] = mapped_column(Integer, nullable=False)
    player_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_competition_ratings_strength", "strength_score"),
    )


class UpdateLog(Base):
    """
    Audit log for system updates.

    Records when major operations happen (rating runs, profile seeding,
    duplicate merges) for debugging and monitoring.
    """
    __tablename__ = "update_log"

    id: Mapped[int] = mapped_column(primary_key=True)

    # 'ratings', 'seed_profiles', ...
    update_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Details about the update (varies by type)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    # Outcome
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_update_log_type_date", "update_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<UpdateLog(type='{self.update_type}', success={self.success})>"
