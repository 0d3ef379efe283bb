"""
Player identity management module.

This module handles matching player records from different providers
(API-Football, FotMob, SofaScore) to canonical player records, and
merging the providers' profile data into them.

Key components:
- PlayerIdentityService: Resolve provider records to canonical players
- CanonicalMergeEngine: Field-precedence merge with conflict logging
- normalize_name / similarity: Name comparison primitives

The matching strategy (in priority order):
1. Exact provider ID link
2. Exact normalized name, scored on birth date and nationality
3. Similar names on the same team, then in the same competition
4. Anything uncertain goes to the review queue
"""

from scoutrank.players.aliases import compare_names, normalize_name, normalize_team_name, similarity
from scoutrank.players.identity import (
    ExternalPlayerRecord,
    LinkOutcome,
    MatchCandidate,
    PlayerIdentityService,
    ResolveResult,
)
from scoutrank.players.merge import (
    CanonicalMergeEngine,
    FieldPrecedence,
    MergeConflict,
    MergeResult,
    NormalizedProfile,
    ProviderAggregateStats,
)

__all__ = [
    "normalize_name",
    "normalize_team_name",
    "similarity",
    "compare_names",
    "ExternalPlayerRecord",
    "LinkOutcome",
    "MatchCandidate",
    "PlayerIdentityService",
    "ResolveResult",
    "CanonicalMergeEngine",
    "FieldPrecedence",
    "MergeConflict",
    "MergeResult",
    "NormalizedProfile",
    "ProviderAggregateStats",
]
