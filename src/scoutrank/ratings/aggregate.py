"""
Rolling stat aggregation.

Turns a player's per-match appearances into a RollingStatWindow:
windowed totals, per-90 rates, ratio stats and the dense feature vector
the percentile scorer consumes.

Missing values are handled by one policy, per stage:
- totals: dense, a stat missing from a match counts as 0
- per90: only present when the window has minutes > 0
- rates: a rate is only present when its denominator is non-zero
- features: dense, anything missing upstream becomes 0.0

Everything here is pure: no database access.
"""

from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Iterable, Mapping, Optional


# Counting stats summed across appearances, in storage order
COUNTING_STATS = (
    "goals",
    "assists",
    "shots",
    "shots_on_target",
    "passes",
    "key_passes",
    "tackles",
    "interceptions",
    "clearances",
    "blocks",
    "duels_won",
    "duels_total",
    "aerial_duels_won",
    "aerial_duels_total",
    "dribbles",
    "dribbles_successful",
    "fouls_committed",
    "fouls_drawn",
    "yellow_cards",
    "red_cards",
    "saves",
    "goals_conceded",
    "xg",
    "xa",
)

TOTAL_KEYS = ("appearances",) + COUNTING_STATS + ("clean_sheets",)

# Attempt counts and cards have no meaningful per-90 of their own
PER90_STATS = tuple(
    key for key in COUNTING_STATS
    if key not in ("duels_total", "aerial_duels_total", "yellow_cards", "red_cards")
)

RATE_KEYS = (
    "pass_completion_rate",
    "duel_win_rate",
    "aerial_win_rate",
    "dribble_success_rate",
    "shot_accuracy",
    "clean_sheet_rate",
    "save_rate",
)

PER90_FEATURE_KEYS = (
    "goals_per90",
    "assists_per90",
    "shots_per90",
    "shots_on_target_per90",
    "passes_per90",
    "key_passes_per90",
    "tackles_per90",
    "interceptions_per90",
    "tackles_interceptions_per90",
    "clearances_per90",
    "blocks_per90",
    "duels_won_per90",
    "aerial_duels_won_per90",
    "dribbles_per90",
    "dribbles_successful_per90",
    "fouls_committed_per90",
    "yellow_cards_per90",
    "red_cards_per90",
    "cards_penalty_per90",
    "saves_per90",
    "goals_conceded_per90",
    "xg_per90",
    "xa_per90",
)

# Features the scorer builds distributions for
SCORED_FEATURE_KEYS = PER90_FEATURE_KEYS + RATE_KEYS + ("goal_contributions_per90",)

# Full feature vector; minutes and appearances are sample-size context only
FEATURE_KEYS = SCORED_FEATURE_KEYS + ("minutes", "appearances")

RED_CARD_WEIGHT = 3


@dataclass
class AppearanceStats:
    """
    Counting stats for one player in one match.

    Every field is optional: providers report different subsets.
    pass_accuracy is a percentage (0-100).
    """
    goals: Optional[float] = None
    assists: Optional[float] = None
    shots: Optional[float] = None
    shots_on_target: Optional[float] = None
    passes: Optional[float] = None
    pass_accuracy: Optional[float] = None
    key_passes: Optional[float] = None
    tackles: Optional[float] = None
    interceptions: Optional[float] = None
    clearances: Optional[float] = None
    blocks: Optional[float] = None
    duels_won: Optional[float] = None
    duels_total: Optional[float] = None
    aerial_duels_won: Optional[float] = None
    aerial_duels_total: Optional[float] = None
    dribbles: Optional[float] = None
    dribbles_successful: Optional[float] = None
    fouls_committed: Optional[float] = None
    fouls_drawn: Optional[float] = None
    yellow_cards: Optional[float] = None
    red_cards: Optional[float] = None
    saves: Optional[float] = None
    goals_conceded: Optional[float] = None
    clean_sheet: Optional[bool] = None
    penalties_saved: Optional[float] = None
    penalties_missed: Optional[float] = None
    xg: Optional[float] = None
    xa: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AppearanceStats":
        """Build from a stored stats dict, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self) -> dict[str, Any]:
        """Only the stats that were reported."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass
class MatchLine:
    """One appearance as seen by the aggregator."""
    match_date: date
    minutes: int
    stats: AppearanceStats = field(default_factory=AppearanceStats)


@dataclass
class RollingStatWindow:
    """Aggregate over a date range or the last N matches."""
    minutes: int
    from_date: Optional[date]
    to_date: Optional[date]
    totals: dict[str, float]
    per90: dict[str, float]
    rates: dict[str, float]
    features: dict[str, float]

    @property
    def appearances(self) -> int:
        return int(self.totals.get("appearances", 0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "minutes": self.minutes,
            "from_date": self.from_date.isoformat() if self.from_date else None,
            "to_date": self.to_date.isoformat() if self.to_date else None,
            "totals": dict(self.totals),
            "per90": dict(self.per90),
            "rates": dict(self.rates),
            "features": dict(self.features),
        }


def aggregate_totals(lines: Iterable[MatchLine]) -> dict[str, float]:
    """Sum counting stats; each clean-sheet flag adds one clean sheet."""
    totals = {key: 0 for key in TOTAL_KEYS}
    for line in lines:
        totals["appearances"] += 1
        stats = line.stats
        for key in COUNTING_STATS:
            value = getattr(stats, key)
            if value is not None:
                totals[key] += value
        if stats.clean_sheet:
            totals["clean_sheets"] += 1
    return totals


def compute_per90(totals: Mapping[str, float], minutes: int) -> dict[str, float]:
    """``total * (90 / minutes)`` per stat, or nothing at all for zero minutes."""
    if minutes <= 0:
        return {}
    factor = 90 / minutes
    return {key: totals.get(key, 0) * factor for key in PER90_STATS}


def compute_rates(totals: Mapping[str, float], lines: Iterable[MatchLine]) -> dict[str, float]:
    """
    Ratio stats, each present only when its denominator is non-zero.

    Pass completion is the mean of the per-match pass accuracies rather
    than a ratio of totals, since providers report accuracy but not
    always completed passes.
    """
    rates: dict[str, float] = {}

    accuracies = [line.stats.pass_accuracy for line in lines if line.stats.pass_accuracy is not None]
    if accuracies:
        rates["pass_completion_rate"] = sum(accuracies) / len(accuracies) / 100

    ratios = (
        ("duel_win_rate", "duels_won", "duels_total"),
        ("aerial_win_rate", "aerial_duels_won", "aerial_duels_total"),
        ("dribble_success_rate", "dribbles_successful", "dribbles"),
        ("shot_accuracy", "shots_on_target", "shots"),
        ("clean_sheet_rate", "clean_sheets", "appearances"),
    )
    for rate_key, numerator, denominator in ratios:
        if totals.get(denominator, 0) > 0:
            rates[rate_key] = totals.get(numerator, 0) / totals[denominator]

    shots_against = totals.get("saves", 0) + totals.get("goals_conceded", 0)
    if shots_against > 0:
        rates["save_rate"] = totals.get("saves", 0) / shots_against

    return rates


def compute_features(
    totals: Mapping[str, float],
    per90: Mapping[str, float],
    rates: Mapping[str, float],
    minutes: int,
) -> dict[str, float]:
    """
    Dense feature vector: every key in FEATURE_KEYS, missing inputs as 0.0.
    """
    factor = 90 / minutes if minutes > 0 else 0.0
    yellow = totals.get("yellow_cards", 0)
    red = totals.get("red_cards", 0)

    features = {f"{key}_per90": float(per90.get(key, 0.0)) for key in PER90_STATS}
    features["tackles_interceptions_per90"] = features["tackles_per90"] + features["interceptions_per90"]
    features["yellow_cards_per90"] = yellow * factor
    features["red_cards_per90"] = red * factor
    features["cards_penalty_per90"] = (yellow + RED_CARD_WEIGHT * red) * factor

    for key in RATE_KEYS:
        features[key] = float(rates.get(key, 0.0))

    features["goal_contributions_per90"] = features["goals_per90"] + features["assists_per90"]
    features["minutes"] = float(minutes)
    features["appearances"] = float(totals.get("appearances", 0))

    return {key: features[key] for key in FEATURE_KEYS}


def _window(lines: list[MatchLine], from_date: Optional[date], to_date: Optional[date]) -> RollingStatWindow:
    minutes = sum(line.minutes for line in lines)
    totals = aggregate_totals(lines)
    per90 = compute_per90(totals, minutes)
    rates = compute_rates(totals, lines)
    return RollingStatWindow(
        minutes=minutes,
        from_date=from_date,
        to_date=to_date,
        totals=totals,
        per90=per90,
        rates=rates,
        features=compute_features(totals, per90, rates, minutes),
    )


def aggregate(lines: Iterable[MatchLine], from_date: date, to_date: date) -> RollingStatWindow:
    """
    Aggregate appearances dated within [from_date, to_date] with minutes > 0.

    The reported date range is the requested one, even if no match falls in it.
    """
    included = [
        line for line in lines
        if from_date <= line.match_date <= to_date and line.minutes > 0
    ]
    included.sort(key=lambda line: line.match_date)
    return _window(included, from_date, to_date)


def aggregate_last_n(lines: Iterable[MatchLine], n: int) -> RollingStatWindow:
    """
    Aggregate the N most recent appearances with minutes > 0.

    The reported date range spans those N matches; with no matches both
    dates are None and every feature is 0.
    """
    played = sorted(
        (line for line in lines if line.minutes > 0),
        key=lambda line: line.match_date,
        reverse=True,
    )
    recent = played[:max(n, 0)]
    if not recent:
        return _window([], None, None)
    return _window(recent, recent[-1].match_date, recent[0].match_date)
