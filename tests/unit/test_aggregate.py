"""
Unit tests for rolling stat aggregation.

Tests the per-90 and rate calculations that feed the scorer:
- Per-90 values scale totals by 90 / minutes
- Rates only exist when their denominator is non-zero
- Feature vectors are dense
"""

from datetime import date, timedelta

import pytest

from scoutrank.ratings.aggregate import (
    FEATURE_KEYS,
    AppearanceStats,
    MatchLine,
    aggregate,
    aggregate_last_n,
    compute_per90,
)

START = date(2025, 8, 1)


def _line(day, minutes=90, **stats):
    return MatchLine(match_date=START + timedelta(days=day), minutes=minutes, stats=AppearanceStats(**stats))


class TestAggregate:
    """Tests for the date-window aggregate."""

    def test_goals_per90(self):
        """Three full matches with one goal each is one goal per 90."""
        lines = [_line(0, goals=1), _line(7, goals=1), _line(14, goals=1)]

        window = aggregate(lines, START, START + timedelta(days=30))

        assert window.minutes == 270
        assert window.totals["goals"] == 3
        assert window.per90["goals"] == pytest.approx(1.0)
        assert window.features["goals_per90"] == pytest.approx(1.0)

    def test_window_bounds_inclusive(self):
        lines = [_line(0, goals=1), _line(10, goals=1), _line(11, goals=1)]

        window = aggregate(lines, START, START + timedelta(days=10))

        assert window.totals["appearances"] == 2
        assert window.from_date == START
        assert window.to_date == START + timedelta(days=10)

    def test_zero_minute_lines_excluded(self):
        window = aggregate([_line(0, minutes=0, goals=1)], START, START)

        assert window.minutes == 0
        assert window.totals["appearances"] == 0

    def test_empty_window(self):
        """No minutes: no per-90 values, no rates, but a dense all-zero feature vector."""
        window = aggregate([], START, START + timedelta(days=365))

        assert window.per90 == {}
        assert window.rates == {}
        assert set(window.features) == set(FEATURE_KEYS)
        assert all(value == 0.0 for value in window.features.values())

    def test_missing_stats_count_as_zero(self):
        lines = [_line(0, goals=2), _line(1)]

        window = aggregate(lines, START, START + timedelta(days=1))

        assert window.totals["goals"] == 2
        assert window.totals["assists"] == 0


class TestRates:
    """Tests for ratio stats."""

    def test_rates(self):
        lines = [
            _line(0, duels_won=6, duels_total=10, shots=4, shots_on_target=2, pass_accuracy=80),
            _line(1, duels_won=4, duels_total=10, shots=0, shots_on_target=0, pass_accuracy=90),
        ]

        window = aggregate(lines, START, START + timedelta(days=1))

        assert window.rates["duel_win_rate"] == pytest.approx(0.5)
        assert window.rates["shot_accuracy"] == pytest.approx(0.5)
        assert window.rates["pass_completion_rate"] == pytest.approx(0.85)

    def test_zero_denominator_is_absent(self):
        """No aerial duels means no aerial win rate, not a rate of zero."""
        window = aggregate([_line(0, duels_won=1, duels_total=2)], START, START)

        assert "aerial_win_rate" not in window.rates
        assert window.features["aerial_win_rate"] == 0.0

    def test_goalkeeper_rates(self):
        lines = [
            _line(0, saves=3, goals_conceded=1, clean_sheet=False),
            _line(1, saves=2, goals_conceded=0, clean_sheet=True),
        ]

        window = aggregate(lines, START, START + timedelta(days=1))

        assert window.rates["save_rate"] == pytest.approx(5 / 6)
        assert window.rates["clean_sheet_rate"] == pytest.approx(0.5)
        assert window.totals["clean_sheets"] == 1


class TestFeatures:
    def test_cards_penalty_weights_reds(self):
        lines = [_line(0, yellow_cards=1), _line(1, red_cards=1)]

        window = aggregate(lines, START, START + timedelta(days=1))

        # (1 yellow + 3 * 1 red) over 180 minutes
        assert window.features["cards_penalty_per90"] == pytest.approx(2.0)
        assert window.features["yellow_cards_per90"] == pytest.approx(0.5)

    def test_combined_features(self):
        window = aggregate([_line(0, goals=1, assists=1, tackles=2, interceptions=1)], START, START)

        assert window.features["goal_contributions_per90"] == pytest.approx(2.0)
        assert window.features["tackles_interceptions_per90"] == pytest.approx(3.0)
        assert window.features["minutes"] == 90.0
        assert window.features["appearances"] == 1.0

    def test_per90_zero_minutes(self):
        assert compute_per90({"goals": 3}, 0) == {}


class TestLastN:
    """Tests for the form window."""

    def test_most_recent_matches(self):
        lines = [_line(day, goals=1 if day >= 5 else 0) for day in range(8)]

        window = aggregate_last_n(lines, 3)

        assert window.totals["appearances"] == 3
        assert window.totals["goals"] == 3
        assert window.from_date == START + timedelta(days=5)
        assert window.to_date == START + timedelta(days=7)

    def test_skips_unplayed(self):
        lines = [_line(0), _line(1), _line(2, minutes=0)]

        window = aggregate_last_n(lines, 2)

        assert window.to_date == START + timedelta(days=1)
        assert window.minutes == 180

    def test_fewer_matches_than_n(self):
        window = aggregate_last_n([_line(0, minutes=45)], 5)

        assert window.totals["appearances"] == 1
        assert window.minutes == 45

    def test_no_matches(self):
        window = aggregate_last_n([], 5)

        assert window.from_date is None
        assert window.to_date is None
        assert window.features["goals_per90"] == 0.0


class TestAppearanceStats:
    def test_from_dict_ignores_unknown_keys(self):
        stats = AppearanceStats.from_dict({"goals": 1, "rating": 7.4})

        assert stats.goals == 1
        assert stats.to_dict() == {"goals": 1}

    def test_from_empty(self):
        assert AppearanceStats.from_dict(None).to_dict() == {}
