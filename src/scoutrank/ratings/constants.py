"""
Rating system constants.

Position groups, competition tiers and the default per-group weight
profiles used by the percentile scorer.

Tier factors scale a player's raw rating into a level score, so that a
90-rated player in a Bronze league is not ranked alongside a 90-rated
player in a Platinum league:
  - Platinum (top five leagues) keeps the full rating
  - Bronze (lowest tier, and any untiered competition) keeps 70%

Weight profiles map feature keys (see ratings.aggregate.FEATURE_KEYS)
to weights. Metrics listed in invert_metrics are "lower is better" and
have their percentile flipped before weighting.
"""

from dataclasses import dataclass, field


POSITION_GROUPS = ("GK", "DEF", "MID", "ATT")

# Ordered strongest first
TIERS = ("Platinum", "Diamond", "Elite", "Gold", "Silver", "Bronze")

TIER_FACTORS = {
    "Platinum": 1.0,
    "Diamond": 0.92,
    "Elite": 0.88,
    "Gold": 0.85,
    "Silver": 0.78,
    "Bronze": 0.7,
}

# Untiered competitions are scaled as the lowest tier
DEFAULT_TIER = "Bronze"

# Rating transform exponent: < 1 spreads the top end apart
RATING_EXPONENT = 0.9


@dataclass(frozen=True)
class ProfileWeights:
    """Feature weights for one position group."""
    position_group: str
    weights: dict[str, float]
    invert_metrics: frozenset[str] = field(default_factory=frozenset)

    def to_dict(self) -> dict:
        return {
            "position_group": self.position_group,
            "weights": dict(self.weights),
            "invert_metrics": sorted(self.invert_metrics),
        }


DEFAULT_RATING_PROFILES = {
    "GK": ProfileWeights(
        position_group="GK",
        weights={
            "saves_per90": 0.25,
            "goals_conceded_per90": 0.25,
            "clean_sheet_rate": 0.2,
            "save_rate": 0.15,
            "pass_completion_rate": 0.1,
            "clearances_per90": 0.05,
        },
        invert_metrics=frozenset({"goals_conceded_per90"}),
    ),
    "DEF": ProfileWeights(
        position_group="DEF",
        weights={
            "tackles_interceptions_per90": 0.2,
            "aerial_win_rate": 0.15,
            "duel_win_rate": 0.15,
            "clearances_per90": 0.1,
            "blocks_per90": 0.08,
            "key_passes_per90": 0.08,
            "dribbles_successful_per90": 0.07,
            "goal_contributions_per90": 0.07,
            "cards_penalty_per90": 0.1,
        },
        invert_metrics=frozenset({"cards_penalty_per90"}),
    ),
    "MID": ProfileWeights(
        position_group="MID",
        weights={
            "key_passes_per90": 0.18,
            "assists_per90": 0.12,
            "pass_completion_rate": 0.12,
            "tackles_interceptions_per90": 0.12,
            "duel_win_rate": 0.1,
            "dribbles_successful_per90": 0.1,
            "goals_per90": 0.08,
            "xa_per90": 0.08,
            "cards_penalty_per90": 0.1,
        },
        invert_metrics=frozenset({"cards_penalty_per90"}),
    ),
    "ATT": ProfileWeights(
        position_group="ATT",
        weights={
            "goals_per90": 0.2,
            "xg_per90": 0.15,
            "assists_per90": 0.1,
            "xa_per90": 0.1,
            "shots_on_target_per90": 0.12,
            "key_passes_per90": 0.1,
            "dribble_success_rate": 0.08,
            "shot_accuracy": 0.08,
            "cards_penalty_per90": 0.07,
        },
        invert_metrics=frozenset({"cards_penalty_per90"}),
    ),
}


def tier_factor(tier: str | None) -> float:
    """Level-score factor for a tier, falling back to the lowest tier."""
    return TIER_FACTORS.get(tier or DEFAULT_TIER, TIER_FACTORS[DEFAULT_TIER])


def is_valid_position_group(value: str | None) -> bool:
    return value in POSITION_GROUPS
