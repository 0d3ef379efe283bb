"""
Canonical merge engine.

Merges normalized provider profiles into the canonical player record.
Each mergeable field has a per-provider priority; a provider only
overwrites a field when it outranks whoever supplied the current value.
Every disagreement is logged to player_field_conflicts, whether or not
the incoming value won, so the conflict table is an audit trail of
values that ever disagreed.

The precedence table is passed in as a FieldPrecedence object, so
alternative policies can be tested or swapped without touching the
engine. The engine never sees provider payloads, only NormalizedProfile.
"""

import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from scoutrank.db.models import (
    Player,
    PlayerFieldConflict,
    ProviderPlayerAggregate,
    ProviderPlayerProfile,
)
from scoutrank.exceptions import NotFoundError

logger = logging.getLogger(__name__)

# Fields a provider profile may change on the canonical player
MERGEABLE_FIELDS = (
    "birth_date",
    "nationality",
    "height_cm",
    "weight_kg",
    "preferred_foot",
    "photo_url",
    "position",
    "position_group",
)

# Source recorded for values set through resolve_conflict(); outranks every provider
MANUAL_SOURCE = "manual"
MANUAL_PRIORITY = 1000

DEFAULT_PRIORITY = 50

# A canonical value with no recorded source loses to any provider
UNKNOWN_SOURCE_PRIORITY = 0

# Set to a placeholder at creation; without a recorded source the value counts as unset
PLACEHOLDER_FIELDS = frozenset({"position_group"})

AGGREGATE_WINDOWS = ("365", "season", "career")

NUMERIC_TOLERANCE = 0.001

_IDENTITY = {
    "api_football": 100,
    "wikidata": 90,
    "sofascore": 80,
    "fotmob": 80,
    "thesportsdb": 70,
    "footballdata": 60,
}
_PHYSICAL = {
    "sofascore": 100,
    "fotmob": 90,
    "api_football": 80,
    "thesportsdb": 70,
    "wikidata": 60,
    "footballdata": 50,
}
_POSITION = {
    "api_football": 100,
    "fotmob": 80,
    "sofascore": 80,
    "thesportsdb": 60,
    "footballdata": 50,
    "wikidata": 40,
}

# API-Football is the primary feed; enrichment providers are trusted for
# the physical attributes they measure more carefully
DEFAULT_FIELD_PRECEDENCE = {
    "name": {
        "api_football": 100,
        "fotmob": 50,
        "sofascore": 50,
        "thesportsdb": 40,
        "wikidata": 30,
        "footballdata": 20,
    },
    "birth_date": dict(_IDENTITY),
    "nationality": dict(_IDENTITY),
    "height_cm": dict(_PHYSICAL),
    "weight_kg": dict(_PHYSICAL),
    "preferred_foot": dict(_PHYSICAL),
    "photo_url": {
        "api_football": 100,
        "sofascore": 90,
        "fotmob": 80,
        "thesportsdb": 70,
        "wikidata": 60,
        "footballdata": 50,
    },
    "position": dict(_POSITION),
    "position_group": dict(_POSITION),
}


@dataclass(frozen=True)
class FieldPrecedence:
    """
    Priority of each provider for each canonical field.

    Higher number = higher priority. Pairs missing from the table get
    default_priority.
    """
    table: Mapping[str, Mapping[str, int]]
    default_priority: int = DEFAULT_PRIORITY

    @classmethod
    def default(cls) -> "FieldPrecedence":
        return cls(table=DEFAULT_FIELD_PRECEDENCE)

    def priority(self, field_name: str, provider: Optional[str]) -> int:
        if provider is None:
            return UNKNOWN_SOURCE_PRIORITY
        if provider == MANUAL_SOURCE:
            return MANUAL_PRIORITY
        return self.table.get(field_name, {}).get(provider, self.default_priority)

    def should_override(self, field_name: str, current_source: Optional[str], provider: str) -> bool:
        """Strictly higher priority wins; ties keep the current value."""
        return self.priority(field_name, provider) > self.priority(field_name, current_source)

    def with_priority(self, field_name: str, provider: str, priority: int) -> "FieldPrecedence":
        """Copy with one (field, provider) priority changed."""
        table = {name: dict(priorities) for name, priorities in self.table.items()}
        table.setdefault(field_name, {})[provider] = priority
        return replace(self, table=table)


@dataclass
class NormalizedProfile:
    """
    Provider-independent player profile: the only shape the merge engine accepts.

    Produced by the adapters in scoutrank.providers.profiles.
    """
    name: Optional[str] = None
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    height_cm: Optional[int] = None
    weight_kg: Optional[int] = None
    preferred_foot: Optional[str] = None  # 'left', 'right', 'both'
    photo_url: Optional[str] = None
    position: Optional[str] = None
    position_group: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {key: _json_value(value) for key, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NormalizedProfile":
        values = {key: data.get(key) for key in cls.__dataclass_fields__}
        if isinstance(values["birth_date"], str):
            values["birth_date"] = date.fromisoformat(values["birth_date"])
        return cls(**values)


@dataclass
class MergeConflict:
    field: str
    canonical_value: Any
    provider_value: Any
    provider: str
    adopted: bool


@dataclass
class MergeResult:
    updated_fields: list[str] = field(default_factory=list)
    conflicts: list[MergeConflict] = field(default_factory=list)
    profile_stored: bool = False


@dataclass
class ProviderAggregateStats:
    """Season/career aggregate as reported by an enrichment provider."""
    appearances: Optional[int] = None
    minutes: Optional[int] = None
    goals: Optional[float] = None
    assists: Optional[float] = None
    yellow_cards: Optional[float] = None
    red_cards: Optional[float] = None
    xg: Optional[float] = None
    xa: Optional[float] = None
    npxg: Optional[float] = None
    goals_per90: Optional[float] = None
    assists_per90: Optional[float] = None
    xg_per90: Optional[float] = None
    xa_per90: Optional[float] = None
    rating: Optional[float] = None


def is_empty(value: Any) -> bool:
    """None and blank strings count as missing."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def values_equal(a: Any, b: Any) -> bool:
    """
    Compare a canonical value with an incoming one.

    Strings compare case-insensitively after trimming, numbers within
    0.001, anything else by equality.
    """
    if isinstance(a, str) and isinstance(b, str):
        return a.strip().lower() == b.strip().lower()
    if _is_number(a) and _is_number(b):
        return abs(float(a) - float(b)) < NUMERIC_TOLERANCE
    if isinstance(a, date) and isinstance(b, str):
        return a.isoformat() == b.strip()
    if isinstance(a, str) and isinstance(b, date):
        return a.strip() == b.isoformat()
    return a == b


class CanonicalMergeEngine:
    """
    Applies provider profiles to canonical players.

    Usage:
        engine = CanonicalMergeEngine(session)
        result = engine.merge_profile(player_id, "fotmob", normalized, raw)
        session.commit()

    Writes are flushed, not committed: one merge is one unit of work for
    the caller's transaction.
    """

    def __init__(self, db: Session, precedence: Optional[FieldPrecedence] = None):
        self.db = db
        self.precedence = precedence or FieldPrecedence.default()

    def merge_profile(
        self,
        player_id: int,
        provider: str,
        normalized: NormalizedProfile,
        raw: Any = None,
    ) -> MergeResult:
        """
        Merge one provider's normalized profile into a canonical player.

        For each mergeable field:
        - empty canonical value (or a placeholder group with no source):
          adopt the incoming value, no conflict
        - empty or equal incoming value: nothing changes
        - otherwise: adopt iff the provider outranks the current source,
          and log a conflict either way

        The provider profile snapshot is stored regardless.

        Raises:
            NotFoundError: If the player doesn't exist
        """
        player = self.db.get(Player, player_id)
        if player is None:
            raise NotFoundError("Player", player_id)

        result = MergeResult()
        sources = dict(player.field_sources or {})

        for field_name in MERGEABLE_FIELDS:
            incoming = getattr(normalized, field_name)
            if is_empty(incoming):
                continue

            current = getattr(player, field_name)
            current_source = sources.get(field_name)

            if is_empty(current) or (field_name in PLACEHOLDER_FIELDS and current_source is None):
                setattr(player, field_name, incoming)
                sources[field_name] = provider
                result.updated_fields.append(field_name)
                continue

            if values_equal(current, incoming):
                # Agreement from a stronger provider takes over the source
                if self.precedence.should_override(field_name, current_source, provider):
                    sources[field_name] = provider
                continue

            adopt = self.precedence.should_override(field_name, current_source, provider)
            result.conflicts.append(MergeConflict(
                field=field_name,
                canonical_value=current,
                provider_value=incoming,
                provider=provider,
                adopted=adopt,
            ))
            if adopt:
                setattr(player, field_name, incoming)
                sources[field_name] = provider
                result.updated_fields.append(field_name)

        if sources != (player.field_sources or {}):
            player.field_sources = sources
        if result.updated_fields:
            player.updated_at = datetime.utcnow()

        self._store_profile(player_id, provider, normalized, raw)
        result.profile_stored = True

        for conflict in result.conflicts:
            self._log_conflict(player_id, conflict)

        self.db.flush()

        if result.conflicts:
            logger.debug(
                "Player %s: %s conflict(s) from %s (%s)",
                player_id,
                len(result.conflicts),
                provider,
                ", ".join(c.field for c in result.conflicts),
            )
        return result

    def resolve_conflict(
        self,
        conflict_id: int,
        accepted_value: Any,
        resolved_by: str = "admin",
    ) -> PlayerFieldConflict:
        """
        Resolve a conflict by accepting a specific value.

        The value is written to the canonical player with the manual
        source, so no provider can override it afterwards.

        Raises:
            NotFoundError: If the conflict doesn't exist
        """
        conflict = self.db.get(PlayerFieldConflict, conflict_id)
        if conflict is None:
            raise NotFoundError("Conflict", conflict_id)

        player = self.db.get(Player, conflict.player_id)
        if player is not None:
            value = accepted_value
            if conflict.field == "birth_date" and isinstance(value, str):
                value = date.fromisoformat(value)
            setattr(player, conflict.field, value)
            player.field_sources = {**(player.field_sources or {}), conflict.field: MANUAL_SOURCE}
            player.updated_at = datetime.utcnow()

        conflict.resolved = True
        conflict.resolved_value = _json_value(accepted_value)
        conflict.resolved_by = resolved_by
        conflict.resolved_at = datetime.utcnow()
        self.db.commit()
        return conflict

    def unresolved_conflicts(self, player_id: int) -> list[PlayerFieldConflict]:
        """All open conflicts for a player."""
        return (
            self.db.query(PlayerFieldConflict)
            .filter(
                PlayerFieldConflict.player_id == player_id,
                PlayerFieldConflict.resolved.is_(False),
            )
            .order_by(PlayerFieldConflict.field, PlayerFieldConflict.provider)
            .all()
        )

    def store_provider_aggregates(
        self,
        player_id: int,
        provider: str,
        stats: ProviderAggregateStats,
        window: str,
        competition_id: Optional[int] = None,
        season: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> ProviderPlayerAggregate:
        """
        Store a provider's aggregated stats for a player (last write wins).

        Raises:
            ValueError: If window is not '365', 'season' or 'career'
        """
        if window not in AGGREGATE_WINDOWS:
            raise ValueError(f"window must be one of {AGGREGATE_WINDOWS}, got {window!r}")

        totals = _present({
            "goals": stats.goals,
            "assists": stats.assists,
            "yellow_cards": stats.yellow_cards,
            "red_cards": stats.red_cards,
            "xg": stats.xg,
            "xa": stats.xa,
        })
        if totals:
            totals = {"appearances": stats.appearances or 0, **totals}
        per90 = _present({
            "goals": stats.goals_per90,
            "assists": stats.assists_per90,
            "xg": stats.xg_per90,
            "xa": stats.xa_per90,
        })
        additional = _present({
            "xg": stats.xg,
            "xa": stats.xa,
            "xg_per90": stats.xg_per90,
            "xa_per90": stats.xa_per90,
            "npxg": stats.npxg,
            "rating": stats.rating,
        })

        row = self.db.query(ProviderPlayerAggregate).filter(
            ProviderPlayerAggregate.player_id == player_id,
            ProviderPlayerAggregate.provider == provider,
            ProviderPlayerAggregate.window == window,
        ).first()
        if row is None:
            row = ProviderPlayerAggregate(player_id=player_id, provider=provider, window=window)
            self.db.add(row)

        row.competition_id = competition_id
        row.season = season
        row.from_date = from_date
        row.to_date = to_date
        row.minutes = stats.minutes
        row.appearances = stats.appearances
        row.totals = totals or None
        row.per90 = per90 or None
        row.additional_stats = additional or None
        row.fetched_at = datetime.utcnow()
        self.db.flush()
        return row

    # =========================================================================
    # Private Helper Methods
    # =========================================================================

    def _store_profile(self, player_id: int, provider: str, normalized: NormalizedProfile, raw: Any) -> None:
        snapshot = self.db.query(ProviderPlayerProfile).filter(
            ProviderPlayerProfile.player_id == player_id,
            ProviderPlayerProfile.provider == provider,
        ).first()
        if snapshot is None:
            snapshot = ProviderPlayerProfile(player_id=player_id, provider=provider)
            self.db.add(snapshot)

        snapshot.profile = raw
        snapshot.normalized = normalized.to_dict()
        snapshot.fetched_at = datetime.utcnow()

    def _log_conflict(self, player_id: int, conflict: MergeConflict) -> None:
        row = self.db.query(PlayerFieldConflict).filter(
            PlayerFieldConflict.player_id == player_id,
            PlayerFieldConflict.field == conflict.field,
            PlayerFieldConflict.provider == conflict.provider,
        ).first()
        if row is None:
            row = PlayerFieldConflict(
                player_id=player_id,
                field=conflict.field,
                provider=conflict.provider,
            )
            self.db.add(row)

        row.canonical_value = _json_value(conflict.canonical_value)
        row.provider_value = _json_value(conflict.provider_value)
        row.resolved = False
        row.resolved_value = None
        row.resolved_by = None
        row.resolved_at = None
        row.fetched_at = datetime.utcnow()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _json_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def _present(values: dict[str, Optional[float]]) -> dict[str, float]:
    return {key: value for key, value in values.items() if value is not None}
