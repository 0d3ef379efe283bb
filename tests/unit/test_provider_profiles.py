"""
Unit tests for provider payload adapters.

Covers profile parsing for FotMob, SofaScore and API-Football,
normalization into NormalizedProfile, and API-Football fixture player
statistics.
"""

from datetime import date

import pytest

from scoutrank.providers.fixtures import parse_api_football_fixture_players
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

FOTMOB_PAYLOAD = {
    "id": 737066,
    "name": "Steven Bergwijn",
    "birthDate": {"utcTime": "1997-10-08T00:00:00.000Z"},
    "nationality": {"country": "Netherlands"},
    "height": "178 cm",
    "weight": "78 kg",
    "preferredFoot": "Right",
    "positionDescription": {"primaryPosition": {"label": "Left Winger"}},
    "primaryTeam": {"teamId": 8593, "teamName": "Ajax"},
    "statSeasons": [
        {
            "seasonName": "2024/2025",
            "leagueId": 57,
            "leagueName": "Eredivisie",
            "stats": {"appearances": 30, "minutes": 2400, "goals": 10, "assists": 5, "expectedGoals": 8.4},
        },
        {
            "seasonName": "2023/2024",
            "leagueId": 57,
            "leagueName": "Eredivisie",
            "stats": {"appearances": 25, "minutes": 1800, "goals": 6, "assists": 4},
        },
        {"seasonName": "2022/2023", "leagueId": 47, "stats": None},
    ],
}

SOFASCORE_PAYLOAD = {
    "player": {
        "id": 826643,
        "name": "Steven Bergwijn",
        "dateOfBirthTimestamp": 876268800,
        "country": {"name": "Netherlands"},
        "height": 178,
        "preferredFoot": "Right",
        "position": "F",
        "team": {"id": 2953, "name": "Al-Ittihad"},
    }
}

API_FOOTBALL_PAYLOAD = {
    "player": {
        "id": 1098,
        "name": "S. Bergwijn",
        "birth": {"date": "1997-10-08", "place": "Amsterdam"},
        "nationality": "Netherlands",
        "height": "178 cm",
        "weight": "78 kg",
        "photo": "https://media.api-sports.io/football/players/1098.png",
    },
    "statistics": [
        {"team": {"id": 194, "name": "Ajax"}, "league": {"id": 88}, "games": {"position": "Attacker"}},
    ],
}


class TestFieldParsers:
    def test_height(self):
        assert parse_height("185 cm") == 185
        assert parse_height("1.85 m") == 185
        assert parse_height(178) == 178
        assert parse_height(0) is None
        assert parse_height("tall") is None
        assert parse_height(None) is None

    def test_weight(self):
        assert parse_weight("78 kg") == 78
        assert parse_weight(78.0) == 78
        assert parse_weight("") is None

    def test_preferred_foot(self):
        assert normalize_preferred_foot("Right") == "right"
        assert normalize_preferred_foot("Either") == "both"
        assert normalize_preferred_foot("unknown") is None
        assert normalize_preferred_foot(None) is None


class TestFotMobProfile:
    """Tests for FotMob playerData parsing."""

    def test_identity_fields(self):
        profile = FotMobProfile.from_payload(FOTMOB_PAYLOAD)

        assert profile.provider_player_id == "737066"
        assert profile.birth_date == date(1997, 10, 8)
        assert profile.nationality == "Netherlands"
        assert profile.height_cm == 178
        assert profile.weight_kg == 78
        assert profile.preferred_foot == "right"
        assert profile.position == "Left Winger"
        assert profile.team_id == "8593"

    def test_seasons_skip_empty_stats(self):
        profile = FotMobProfile.from_payload(FOTMOB_PAYLOAD)

        assert [s.season_name for s in profile.seasons] == ["2024/2025", "2023/2024"]
        assert profile.seasons[0].stats.xg == 8.4
        assert profile.seasons[1].stats.xg is None

    def test_season_filter(self):
        """Season names match by substring: "2024" covers both 2023/2024 and 2024/2025."""
        profile = FotMobProfile.from_payload(FOTMOB_PAYLOAD)

        assert [s.season_name for s in profile.season_stats(season="2024/2025")] == ["2024/2025"]
        assert len(profile.season_stats(season="2024")) == 2
        assert profile.season_stats(league_id="47") == []

    def test_career_stats(self):
        """Career per-90 is recomputed from summed minutes, not averaged."""
        career = FotMobProfile.from_payload(FOTMOB_PAYLOAD).career_stats()

        assert career.appearances == 55
        assert career.minutes == 4200
        assert career.goals == 16
        assert career.goals_per90 == pytest.approx(16 * 90 / 4200)

    def test_no_seasons(self):
        profile = FotMobProfile.from_payload({"id": 1, "name": "Unknown"})

        assert profile.career_stats() is None
        assert profile.birth_date is None


class TestOtherProviders:
    def test_sofascore(self):
        profile = SofaScoreProfile.from_payload(SOFASCORE_PAYLOAD)

        assert profile.provider_player_id == "826643"
        assert profile.birth_date == date(1997, 10, 8)
        assert profile.nationality == "Netherlands"
        assert profile.position == "Forward"
        assert profile.team_name == "Al-Ittihad"

    def test_sofascore_unwrapped(self):
        assert SofaScoreProfile.from_payload(SOFASCORE_PAYLOAD["player"]).name == "Steven Bergwijn"

    def test_api_football(self):
        profile = ApiFootballProfile.from_payload(API_FOOTBALL_PAYLOAD)

        assert profile.provider_player_id == "1098"
        assert profile.name == "S. Bergwijn"
        assert profile.birth_date == date(1997, 10, 8)
        assert profile.photo_url.endswith("1098.png")
        assert profile.position == "Attacker"
        assert profile.team_id == "194"
        assert profile.league_id == "88"

    def test_api_football_without_statistics(self):
        profile = ApiFootballProfile.from_payload({"player": {"id": 5, "name": "X"}})

        assert profile.position is None
        assert profile.team_id is None


class TestNormalize:
    """Tests for the adapter output consumed by the merge engine."""

    def test_fotmob(self):
        normalized = normalize_profile(FotMobProfile.from_payload(FOTMOB_PAYLOAD))

        assert normalized.name == "Steven Bergwijn"
        assert normalized.height_cm == 178
        assert normalized.position_group == "MID"
        assert normalized.photo_url is None

    def test_api_football(self):
        normalized = normalize_profile(ApiFootballProfile.from_payload(API_FOOTBALL_PAYLOAD))

        assert normalized.position_group == "ATT"
        assert normalized.preferred_foot is None
        assert normalized.to_dict()["birth_date"] == "1997-10-08"

    def test_unmappable_position_left_unset(self):
        profile = SofaScoreProfile.from_payload({"id": 1, "name": "Coach", "position": "Manager"})

        assert normalize_profile(profile).position_group is None

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            normalize_profile({"id": 1})


class TestParseProfile:
    def test_dispatch(self):
        assert isinstance(parse_profile("fotmob", FOTMOB_PAYLOAD), FotMobProfile)
        assert isinstance(parse_profile("sofascore", SOFASCORE_PAYLOAD), SofaScoreProfile)
        assert isinstance(parse_profile("api_football", API_FOOTBALL_PAYLOAD), ApiFootballProfile)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="No profile adapter"):
            parse_profile("wikidata", {"id": 1})

    def test_missing_id(self):
        with pytest.raises(KeyError):
            parse_profile("fotmob", {"name": "No Id"})


FIXTURE_RESPONSE = [
    {
        "team": {"id": 194, "name": "Ajax"},
        "players": [
            {
                "player": {"id": 1098, "name": "S. Bergwijn"},
                "statistics": [{
                    "games": {"minutes": 90, "position": "F"},
                    "goals": {"total": 1, "assists": None, "conceded": 0, "saves": None},
                    "shots": {"total": 3, "on": 2},
                    "passes": {"total": 30, "key": 2, "accuracy": "84%"},
                    "tackles": {"total": 1, "blocks": None, "interceptions": 0},
                    "duels": {"total": 10, "won": 6},
                    "dribbles": {"attempts": 4, "success": 2},
                    "fouls": {"drawn": 2, "committed": 1},
                    "cards": {"yellow": 1, "red": 0},
                    "penalty": {"saved": None, "missed": 0},
                }],
            },
            {
                "player": {"id": 2000, "name": "Unused Substitute"},
                "statistics": [{"games": {"minutes": None, "position": "M"}}],
            },
        ],
    },
]


class TestFixturePlayers:
    """Tests for API-Football /fixtures/players parsing."""

    def test_parses_played_entries(self):
        appearances = parse_api_football_fixture_players(FIXTURE_RESPONSE, "1035", "2025-09-14T14:30:00+00:00")

        assert len(appearances) == 1
        line = appearances[0]
        assert line.provider == "api_football"
        assert line.provider_player_id == "1098"
        assert line.provider_fixture_id == "1035"
        assert line.provider_team_id == "194"
        assert line.match_date == date(2025, 9, 14)
        assert line.minutes == 90
        assert line.player_position == "F"

    def test_stats(self):
        stats = parse_api_football_fixture_players(FIXTURE_RESPONSE, "1035", date(2025, 9, 14))[0].stats

        assert stats.goals == 1.0
        assert stats.assists is None
        assert stats.pass_accuracy == 84.0
        assert stats.shots_on_target == 2.0
        assert stats.dribbles_successful == 2.0
        assert stats.yellow_cards == 1.0

    def test_invalid_date(self):
        with pytest.raises(ValueError, match="Invalid match date"):
            parse_api_football_fixture_players(FIXTURE_RESPONSE, "1035", "not a date")
