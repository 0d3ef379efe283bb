"""
Provider profile adapters.

Parses the player profile payloads of FotMob, SofaScore and API-Football
into per-provider dataclasses, and normalizes those into the one shape
the merge engine accepts (NormalizedProfile).

Payloads are the decoded JSON bodies the providers return. Parsing is
lenient: a missing or malformed field leaves the attribute as None.

Usage:
    profile = FotMobProfile.from_payload(payload)
    normalized = normalize_profile(profile)
    engine.merge_profile(player_id, "fotmob", normalized, raw=payload)
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Optional, Union

from scoutrank.players.merge import NormalizedProfile, ProviderAggregateStats
from scoutrank.players.positions import map_position_to_group
from scoutrank.providers.utils import (
    as_float,
    as_int,
    as_str,
    get_path,
    parse_iso_date,
    parse_timestamp_date,
)

logger = logging.getLogger(__name__)

_HEIGHT_CM_RE = re.compile(r"(\d+)\s*cm", re.IGNORECASE)
_HEIGHT_M_RE = re.compile(r"(\d\.\d+)\s*m\b", re.IGNORECASE)
_WEIGHT_RE = re.compile(r"(\d+)\s*kg", re.IGNORECASE)

# SofaScore uses single-letter positions
_SOFASCORE_POSITIONS = {"G": "Goalkeeper", "D": "Defender", "M": "Midfielder", "F": "Forward"}


# =============================================================================
# Field parsers
# =============================================================================

def parse_height(value: Any) -> Optional[int]:
    """
    Height in cm from a number or a string like "185 cm" or "1.85 m".

    Examples:
        >>> parse_height("185 cm")
        185
        >>> parse_height("1.85 m")
        185
        >>> parse_height(None) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None

    text = str(value)
    m = _HEIGHT_CM_RE.search(text)
    if m:
        return int(m.group(1))
    m = _HEIGHT_M_RE.search(text)
    if m:
        return int(round(float(m.group(1)) * 100))
    return None


def parse_weight(value: Any) -> Optional[int]:
    """Weight in kg from a number or a string like "78 kg"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    m = _WEIGHT_RE.search(str(value))
    return int(m.group(1)) if m else None


def normalize_preferred_foot(value: Optional[str]) -> Optional[str]:
    """'left', 'right' or 'both'; 'either' counts as both."""
    if not value:
        return None
    lower = value.strip().lower()
    if lower in ("left", "right"):
        return lower
    if lower in ("both", "either"):
        return "both"
    return None


# =============================================================================
# Provider profiles
# =============================================================================

@dataclass
class FotMobSeason:
    """One row of FotMob's statSeasons."""
    season_name: str
    league_id: Optional[str] = None
    league_name: Optional[str] = None
    stats: ProviderAggregateStats = field(default_factory=ProviderAggregateStats)


@dataclass
class FotMobProfile:
    """Player data from FotMob's playerData endpoint."""
    provider_player_id: str
    name: str
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    height_cm: Optional[int] = None
    weight_kg: Optional[int] = None
    preferred_foot: Optional[str] = None
    position: Optional[str] = None
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    seasons: list[FotMobSeason] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "FotMobProfile":
        seasons = []
        for row in payload.get("statSeasons") or []:
            stats = row.get("stats")
            if not stats:
                continue
            seasons.append(FotMobSeason(
                season_name=str(row.get("seasonName", "")),
                league_id=as_str(row.get("leagueId")),
                league_name=row.get("leagueName"),
                stats=ProviderAggregateStats(
                    appearances=as_int(stats.get("appearances")),
                    minutes=as_int(stats.get("minutes")),
                    goals=as_float(stats.get("goals")),
                    assists=as_float(stats.get("assists")),
                    yellow_cards=as_float(stats.get("yellowCards")),
                    red_cards=as_float(stats.get("redCards")),
                    xg=as_float(stats.get("expectedGoals")),
                    xa=as_float(stats.get("expectedAssists")),
                    npxg=as_float(stats.get("expectedGoalsNonPenalty")),
                    goals_per90=as_float(stats.get("goalsPer90")),
                    assists_per90=as_float(stats.get("assistsPer90")),
                    xg_per90=as_float(stats.get("expectedGoalsPer90")),
                    xa_per90=as_float(stats.get("expectedAssistsPer90")),
                    rating=as_float(stats.get("rating")),
                ),
            ))

        return cls(
            provider_player_id=str(payload["id"]),
            name=payload.get("name", ""),
            birth_date=parse_iso_date(get_path(payload, "birthDate", "utcTime")),
            nationality=get_path(payload, "nationality", "country"),
            height_cm=parse_height(payload.get("height")),
            weight_kg=parse_weight(payload.get("weight")),
            preferred_foot=normalize_preferred_foot(payload.get("preferredFoot")),
            position=get_path(payload, "positionDescription", "primaryPosition", "label"),
            team_id=as_str(get_path(payload, "primaryTeam", "teamId")),
            team_name=get_path(payload, "primaryTeam", "teamName"),
            seasons=seasons,
        )

    def season_stats(self, season: Optional[str] = None, league_id: Optional[str] = None) -> list[FotMobSeason]:
        """Seasons whose name contains `season` and whose league matches, if given."""
        return [
            row for row in self.seasons
            if (season is None or season in row.season_name)
            and (league_id is None or row.league_id == league_id)
        ]

    def career_stats(self) -> Optional[ProviderAggregateStats]:
        """Sum of all seasons, with per-90 rates recomputed from the summed minutes."""
        if not self.seasons:
            return None

        def total(attr: str) -> float:
            return sum(getattr(row.stats, attr) or 0 for row in self.seasons)

        career = ProviderAggregateStats(
            appearances=int(total("appearances")),
            minutes=int(total("minutes")),
            goals=total("goals"),
            assists=total("assists"),
            xg=total("xg"),
            xa=total("xa"),
            npxg=total("npxg"),
        )
        if career.minutes:
            factor = 90 / career.minutes
            career.goals_per90 = career.goals * factor
            career.assists_per90 = career.assists * factor
            career.xg_per90 = career.xg * factor
            career.xa_per90 = career.xa * factor
        return career


@dataclass
class SofaScoreProfile:
    """Player data from SofaScore's player endpoint."""
    provider_player_id: str
    name: str
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    height_cm: Optional[int] = None
    preferred_foot: Optional[str] = None
    position: Optional[str] = None
    team_id: Optional[str] = None
    team_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SofaScoreProfile":
        # The endpoint wraps the player object; accept it unwrapped too
        player = payload.get("player", payload)
        position = player.get("position")
        return cls(
            provider_player_id=str(player["id"]),
            name=player.get("name", ""),
            birth_date=parse_timestamp_date(player.get("dateOfBirthTimestamp")),
            nationality=get_path(player, "country", "name"),
            height_cm=parse_height(player.get("height")),
            preferred_foot=normalize_preferred_foot(player.get("preferredFoot")),
            position=_SOFASCORE_POSITIONS.get(position, position),
            team_id=as_str(get_path(player, "team", "id")),
            team_name=get_path(player, "team", "name"),
        )


@dataclass
class ApiFootballProfile:
    """Player data from API-Football's /players endpoint (one response item)."""
    provider_player_id: str
    name: str
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    height_cm: Optional[int] = None
    weight_kg: Optional[int] = None
    photo_url: Optional[str] = None
    position: Optional[str] = None
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    league_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ApiFootballProfile":
        player = payload.get("player", payload)
        statistics = payload.get("statistics") or []
        # Position and club come from the first statistics entry
        first = statistics[0] if statistics else {}
        return cls(
            provider_player_id=str(player["id"]),
            name=player.get("name", ""),
            birth_date=parse_iso_date(get_path(player, "birth", "date")),
            nationality=player.get("nationality"),
            height_cm=parse_height(player.get("height")),
            weight_kg=parse_weight(player.get("weight")),
            photo_url=player.get("photo"),
            position=get_path(first, "games", "position"),
            team_id=as_str(get_path(first, "team", "id")),
            team_name=get_path(first, "team", "name"),
            league_id=as_str(get_path(first, "league", "id")),
        )


ProviderProfile = Union[FotMobProfile, SofaScoreProfile, ApiFootballProfile]


def normalize_profile(profile: ProviderProfile) -> NormalizedProfile:
    """
    Convert a provider profile into a NormalizedProfile.

    The position group is derived from the provider's position label;
    an unmappable label leaves it unset rather than defaulting.

    Raises:
        TypeError: For an unsupported profile type
    """
    if not isinstance(profile, (FotMobProfile, SofaScoreProfile, ApiFootballProfile)):
        raise TypeError(f"Unsupported profile type: {type(profile).__name__}")

    return NormalizedProfile(
        name=profile.name or None,
        birth_date=profile.birth_date,
        nationality=profile.nationality,
        height_cm=profile.height_cm,
        weight_kg=getattr(profile, "weight_kg", None),
        preferred_foot=getattr(profile, "preferred_foot", None),
        photo_url=getattr(profile, "photo_url", None),
        position=profile.position,
        position_group=map_position_to_group(profile.position),
    )


PROFILE_PARSERS = {
    "fotmob": FotMobProfile.from_payload,
    "sofascore": SofaScoreProfile.from_payload,
    "api_football": ApiFootballProfile.from_payload,
}


def parse_profile(provider: str, payload: Mapping[str, Any]) -> ProviderProfile:
    """
    Parse a raw payload with the adapter registered for the provider.

    Raises:
        ValueError: If no adapter exists for the provider
        KeyError: If the payload has no player id
    """
    parser = PROFILE_PARSERS.get(provider)
    if parser is None:
        raise ValueError(f"No profile adapter for provider: {provider}")
    profile = parser(payload)
    logger.debug("Parsed %s profile %s (%s)", provider, profile.provider_player_id, profile.name)
    return profile
