"""
Percentile rating scorer.

Ratings are position-normalized: each feature is converted to its
percentile among players of the same position group before weighting,
so a striker's finishing is never benchmarked against a goalkeeper's.

Computation is two-phase. All distributions (per position group, per
window) are built from the whole population first, then every player
is scored against them.

Missing data degrades gracefully: a metric with no value or an empty
distribution is skipped, and a player with no usable metrics scores the
population median (0.5).
"""

import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from scoutrank.config import settings
from scoutrank.ratings.aggregate import SCORED_FEATURE_KEYS
from scoutrank.ratings.constants import (
    DEFAULT_RATING_PROFILES,
    POSITION_GROUPS,
    RATING_EXPONENT,
    ProfileWeights,
    tier_factor,
)

MEDIAN_SCORE = 0.5


@dataclass
class PlayerRatingInput:
    """One eligible player: a group, two feature windows and the competition tier."""
    player_id: int
    competition_id: int
    position_group: str
    features365: Mapping[str, float]
    features_last5: Mapping[str, float]
    tier: Optional[str] = None


@dataclass
class ComputedRating:
    player_id: int
    competition_id: int
    position_group: str
    rating365: int
    rating_last5: int
    tier: Optional[str]
    level_score: int

    def __repr__(self) -> str:
        return (
            f"<ComputedRating(player={self.player_id}, group='{self.position_group}', "
            f"rating365={self.rating365}, level={self.level_score})>"
        )


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def percentile(value: float, sorted_values: Sequence[float]) -> float:
    """
    Mid-rank percentile of value in a distribution.

    ``(count(x < v) + 0.5 * count(x == v)) / len``. Distributions with
    fewer than two members return 0.5.

    Examples:
        >>> percentile(3, [1, 2, 3, 4, 5])
        0.5
        >>> percentile(5, [1, 2, 3, 4, 5])
        0.9
    """
    if len(sorted_values) < 2:
        return MEDIAN_SCORE

    less = 0
    equal = 0
    for x in sorted_values:
        if x < value:
            less += 1
        elif x == value:
            equal += 1
    return (less + 0.5 * equal) / len(sorted_values)


def _usable(value) -> bool:
    return value is not None and not (isinstance(value, float) and math.isnan(value))


def build_distributions(
    feature_vectors: Iterable[Mapping[str, float]],
    keys: Sequence[str] = SCORED_FEATURE_KEYS,
) -> dict[str, list[float]]:
    """Sorted values per feature key, skipping missing and NaN values."""
    vectors = list(feature_vectors)
    distributions = {}
    for key in keys:
        values = [vector.get(key) for vector in vectors]
        distributions[key] = sorted(v for v in values if _usable(v))
    return distributions


def compute_rating_score(
    features: Mapping[str, float],
    profile: ProfileWeights,
    distributions: Mapping[str, Sequence[float]],
) -> float:
    """
    Weighted mean percentile of a player's features (0-1).

    Zero weights, missing values and empty distributions are skipped.
    Inverted metrics use ``1 - percentile``.
    """
    weighted_sum = 0.0
    total_weight = 0.0

    for key, weight in profile.weights.items():
        if weight == 0:
            continue
        value = features.get(key)
        if not _usable(value):
            continue
        distribution = distributions.get(key)
        if not distribution:
            continue

        p = percentile(value, distribution)
        if key in profile.invert_metrics:
            p = 1 - p

        weighted_sum += p * weight
        total_weight += weight

    if total_weight == 0:
        return MEDIAN_SCORE
    return weighted_sum / total_weight


def score_to_rating(score: float) -> int:
    """
    Map a 0-1 score to a 0-100 rating: ``round(100 * score ** 0.9)``.

    The exponent compresses low scores and spreads the top end apart.
    """
    rating = round_half_up(100 * max(score, 0.0) ** RATING_EXPONENT)
    return max(0, min(100, rating))


def compute_level_score(rating365: int, tier: Optional[str] = None) -> int:
    """Tier-adjusted rating; untiered competitions use the lowest tier factor."""
    level = round_half_up(rating365 * tier_factor(tier))
    return max(0, min(100, level))


def compute_all_ratings(
    players: Sequence[PlayerRatingInput],
    profiles: Optional[Mapping[str, ProfileWeights]] = None,
) -> list[ComputedRating]:
    """
    Rate a whole population.

    Distributions are built per position group and separately for the
    365-day and last-5 windows before anyone is scored. Players with an
    unknown position group are skipped.

    Args:
        players: Eligible players (minimum minutes already applied)
        profiles: Per-group weight profiles; missing groups use the defaults

    Returns:
        One ComputedRating per rated player, in input order
    """
    profiles = profiles or {}

    distributions = {}
    for group in POSITION_GROUPS:
        members = [p for p in players if p.position_group == group]
        distributions[group] = (
            build_distributions(p.features365 for p in members),
            build_distributions(p.features_last5 for p in members),
        )

    results = []
    for player in players:
        if player.position_group not in distributions:
            continue
        profile = profiles.get(player.position_group) or DEFAULT_RATING_PROFILES[player.position_group]
        dist365, dist_last5 = distributions[player.position_group]

        rating365 = score_to_rating(compute_rating_score(player.features365, profile, dist365))
        rating_last5 = score_to_rating(compute_rating_score(player.features_last5, profile, dist_last5))

        results.append(ComputedRating(
            player_id=player.player_id,
            competition_id=player.competition_id,
            position_group=player.position_group,
            rating365=rating365,
            rating_last5=rating_last5,
            tier=player.tier,
            level_score=compute_level_score(rating365, player.tier),
        ))

    return results


def compute_competition_strength(level_scores: Iterable[int], top_n: Optional[int] = None) -> int:
    """
    Mean of the top N level scores, rounded.

    With fewer than N scores, all of them are averaged (no zero padding).
    An empty competition has strength 0.
    """
    if top_n is None:
        top_n = settings.competition_strength_top_n
    ranked = sorted(level_scores, reverse=True)[:top_n]
    if not ranked:
        return 0
    return round_half_up(sum(ranked) / len(ranked))
