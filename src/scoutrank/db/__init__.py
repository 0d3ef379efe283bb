"""
Database module for scoutrank.

Provides SQLAlchemy ORM models and session management.

Usage:
    from scoutrank.db import get_session, Player, PlayerExternalId

    with get_session() as session:
        players = session.query(Player).all()
"""

from scoutrank.db.models import (
    Base,
    Competition,
    Team,
    Player,
    PlayerExternalId,
    UnresolvedExternalPlayer,
    ProviderPlayerProfile,
    ProviderPlayerAggregate,
    PlayerFieldConflict,
    Appearance,
    PlayerRollingStats,
    RatingProfile,
    PlayerRating,
    CompetitionRating,
    UpdateLog,
)
from scoutrank.db.session import get_session, get_engine, SessionLocal

__all__ = [
    # Base
    "Base",
    # Models
    "Competition",
    "Team",
    "Player",
    "PlayerExternalId",
    "UnresolvedExternalPlayer",
    "ProviderPlayerProfile",
    "ProviderPlayerAggregate",
    "PlayerFieldConflict",
    "Appearance",
    "PlayerRollingStats",
    "RatingProfile",
    "PlayerRating",
    "CompetitionRating",
    "UpdateLog",
    # Session
    "get_session",
    "get_engine",
    "SessionLocal",
]
