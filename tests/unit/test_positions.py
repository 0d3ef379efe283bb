"""
Unit tests for position label mapping.
"""

import pytest

from scoutrank.players.positions import map_position_to_group, map_position_to_group_with_default


class TestMapPositionToGroup:
    """Tests for raw label -> GK/DEF/MID/ATT."""

    @pytest.mark.parametrize("label, group", [
        ("G", "GK"),
        ("D", "DEF"),
        ("M", "MID"),
        ("F", "ATT"),
        ("Goalkeeper", "GK"),
        ("Centre-Back", "DEF"),
        ("Left Winger", "MID"),
        ("CDM", "MID"),
        ("ST", "ATT"),
        ("Portero", "GK"),
        ("Stürmer", "ATT"),
    ])
    def test_known_labels(self, label, group):
        assert map_position_to_group(label) == group

    def test_group_names_pass_through(self):
        """Already-mapped groups map to themselves, case-insensitively."""
        assert map_position_to_group("att") == "ATT"
        assert map_position_to_group("GK") == "GK"

    def test_longest_phrase_wins(self):
        """'wing-back' inside a longer label is a defender, not a winger."""
        assert map_position_to_group("Right Wing-Back (inverted)") == "DEF"

    def test_short_abbreviation_does_not_match_inside_words(self):
        """'g' must not turn 'left wing' into a goalkeeper."""
        assert map_position_to_group("left wing") == "MID"

    def test_substring_fallback(self):
        assert map_position_to_group("Deep-lying striker") == "ATT"
        assert map_position_to_group("Backup goalkeeper") == "GK"

    def test_unknown(self):
        assert map_position_to_group("Coach") is None
        assert map_position_to_group("") is None
        assert map_position_to_group(None) is None


class TestDefault:
    def test_unknown_falls_back_to_mid(self):
        assert map_position_to_group_with_default("Coach") == "MID"

    def test_custom_default(self):
        assert map_position_to_group_with_default(None, default="ATT") == "ATT"

    def test_known_label_ignores_default(self):
        assert map_position_to_group_with_default("Defender", default="ATT") == "DEF"
