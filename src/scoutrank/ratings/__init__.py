"""
Player rating module.

Implements position-normalized football ratings with:
- Rolling 365-day and last-5 stat windows (per-90 rates and ratios)
- Percentile scoring against players of the same position group
- Per-group feature weights with inverted (lower is better) metrics
- Competition tier adjustment (level score) and competition strength
"""

from scoutrank.ratings.aggregate import (
    AppearanceStats,
    MatchLine,
    RollingStatWindow,
    aggregate,
    aggregate_last_n,
)
from scoutrank.ratings.constants import DEFAULT_RATING_PROFILES, POSITION_GROUPS, TIERS, ProfileWeights
from scoutrank.ratings.pipeline import (
    RatingPipeline,
    RatingRunResult,
    load_profiles,
    seed_rating_profiles,
    update_rating_profile,
)
from scoutrank.ratings.scoring import (
    ComputedRating,
    PlayerRatingInput,
    compute_all_ratings,
    compute_competition_strength,
    percentile,
)

__all__ = [
    "AppearanceStats",
    "MatchLine",
    "RollingStatWindow",
    "aggregate",
    "aggregate_last_n",
    "DEFAULT_RATING_PROFILES",
    "POSITION_GROUPS",
    "TIERS",
    "ProfileWeights",
    "RatingPipeline",
    "RatingRunResult",
    "load_profiles",
    "seed_rating_profiles",
    "update_rating_profile",
    "ComputedRating",
    "PlayerRatingInput",
    "compute_all_ratings",
    "compute_competition_strength",
    "percentile",
]
