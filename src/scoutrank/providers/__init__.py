"""
Provider payload adapters.

Turns decoded provider responses (API-Football, FotMob, SofaScore) into
the provider-independent shapes the rest of the system works with:
NormalizedProfile for the merge engine and ProviderAppearance for
appearance ingestion. Fetching is out of scope; callers pass payloads in.
"""

from scoutrank.providers.fixtures import ProviderAppearance, parse_api_football_fixture_players
from scoutrank.providers.profiles import (
    ApiFootballProfile,
    FotMobProfile,
    SofaScoreProfile,
    normalize_preferred_foot,
    normalize_profile,
    parse_height,
    parse_profile,
    parse_weight,
)

__all__ = [
    "ProviderAppearance",
    "parse_api_football_fixture_players",
    "ApiFootballProfile",
    "FotMobProfile",
    "SofaScoreProfile",
    "normalize_preferred_foot",
    "normalize_profile",
    "parse_height",
    "parse_profile",
    "parse_weight",
]
