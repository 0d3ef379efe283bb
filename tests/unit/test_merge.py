"""
Unit tests for the canonical merge engine.

Tests field precedence, conflict logging and manual resolution:
- Empty canonical fields are filled without a conflict
- A lower-priority provider never overwrites, but its disagreement is logged
- Manually resolved values outrank every provider
"""

from datetime import date

import pytest

from scoutrank.db.models import PlayerFieldConflict, ProviderPlayerAggregate, ProviderPlayerProfile
from scoutrank.exceptions import NotFoundError
from scoutrank.players.merge import (
    MANUAL_SOURCE,
    CanonicalMergeEngine,
    FieldPrecedence,
    NormalizedProfile,
    ProviderAggregateStats,
    values_equal,
)


@pytest.fixture
def engine(db_session):
    return CanonicalMergeEngine(db_session)


class TestFieldPrecedence:
    """Tests for the precedence policy object."""

    def test_api_football_leads_identity_fields(self):
        precedence = FieldPrecedence.default()
        assert precedence.should_override("birth_date", "fotmob", "api_football")
        assert not precedence.should_override("birth_date", "api_football", "fotmob")

    def test_sofascore_leads_physical_fields(self):
        precedence = FieldPrecedence.default()
        assert precedence.should_override("height_cm", "api_football", "sofascore")

    def test_tie_keeps_current(self):
        """FotMob and SofaScore share a priority for birth_date; neither displaces the other."""
        precedence = FieldPrecedence.default()
        assert not precedence.should_override("birth_date", "fotmob", "sofascore")

    def test_unknown_source_loses(self):
        assert FieldPrecedence.default().should_override("nationality", None, "footballdata")

    def test_unknown_provider_gets_default(self):
        precedence = FieldPrecedence.default()
        assert precedence.priority("birth_date", "transfermarkt") == precedence.default_priority

    def test_manual_outranks_everyone(self):
        precedence = FieldPrecedence.default()
        assert not precedence.should_override("birth_date", MANUAL_SOURCE, "api_football")

    def test_with_priority_copies(self):
        base = FieldPrecedence.default()
        changed = base.with_priority("birth_date", "fotmob", 200)

        assert changed.should_override("birth_date", "api_football", "fotmob")
        assert not base.should_override("birth_date", "api_football", "fotmob")


class TestValuesEqual:
    def test_strings_case_and_whitespace(self):
        assert values_equal("Netherlands", " netherlands ")

    def test_numeric_tolerance(self):
        assert values_equal(180, 180.0004)
        assert not values_equal(180, 181)

    def test_date_against_iso_string(self):
        assert values_equal(date(1997, 10, 8), "1997-10-08")


class TestMergeProfile:
    """Tests for merging a normalized profile into a canonical player."""

    def test_fills_empty_field_without_conflict(self, db_session, engine, bergwijn):
        result = engine.merge_profile(bergwijn.id, "fotmob", NormalizedProfile(height_cm=178))

        assert bergwijn.height_cm == 178
        assert bergwijn.field_sources["height_cm"] == "fotmob"
        assert result.updated_fields == ["height_cm"]
        assert result.conflicts == []
        assert db_session.query(PlayerFieldConflict).count() == 0

    def test_lower_priority_conflict_is_logged_not_applied(self, db_session, engine, bergwijn):
        """FotMob disagrees with API-Football on birth date: keep the value, log the conflict."""
        result = engine.merge_profile(
            bergwijn.id, "fotmob", NormalizedProfile(birth_date=date(1997, 10, 9)),
        )

        assert bergwijn.birth_date == date(1997, 10, 8)
        assert bergwijn.field_sources["birth_date"] == "api_football"
        assert len(result.conflicts) == 1
        assert not result.conflicts[0].adopted

        conflict = db_session.query(PlayerFieldConflict).one()
        assert conflict.field == "birth_date"
        assert conflict.provider == "fotmob"
        assert conflict.canonical_value == "1997-10-08"
        assert conflict.provider_value == "1997-10-09"
        assert conflict.resolved is False

    def test_higher_priority_overrides_and_logs(self, db_session, engine, make_player):
        player = make_player("Brian Brobbey", height_cm=180, sources={"height_cm": "fotmob"})

        result = engine.merge_profile(player.id, "sofascore", NormalizedProfile(height_cm=182))

        assert player.height_cm == 182
        assert player.field_sources["height_cm"] == "sofascore"
        assert result.conflicts[0].adopted
        assert db_session.query(PlayerFieldConflict).count() == 1

    def test_equal_values_no_conflict(self, db_session, engine, bergwijn):
        result = engine.merge_profile(
            bergwijn.id, "fotmob", NormalizedProfile(birth_date=date(1997, 10, 8), nationality="netherlands"),
        )

        assert result.conflicts == []
        assert result.updated_fields == []

    def test_equal_value_from_stronger_provider_takes_source(self, engine, make_player):
        player = make_player("Brian Brobbey", height_cm=180, sources={"height_cm": "api_football"})

        engine.merge_profile(player.id, "sofascore", NormalizedProfile(height_cm=180))

        assert player.field_sources["height_cm"] == "sofascore"

    def test_placeholder_group_filled_without_conflict(self, db_session, engine, make_player):
        """A MID placeholder nobody supplied is a gap, not a disagreement."""
        player = make_player("Brian Brobbey")

        result = engine.merge_profile(player.id, "fotmob", NormalizedProfile(position_group="ATT"))

        assert player.position_group == "ATT"
        assert player.field_sources["position_group"] == "fotmob"
        assert result.updated_fields == ["position_group"]
        assert result.conflicts == []
        assert db_session.query(PlayerFieldConflict).count() == 0

    def test_sourced_group_keeps_precedence(self, engine, bergwijn):
        result = engine.merge_profile(bergwijn.id, "fotmob", NormalizedProfile(position_group="MID"))

        assert bergwijn.position_group == "ATT"
        assert [(c.field, c.adopted) for c in result.conflicts] == [("position_group", False)]

    def test_empty_incoming_is_ignored(self, engine, bergwijn):
        result = engine.merge_profile(bergwijn.id, "fotmob", NormalizedProfile(nationality="  "))

        assert bergwijn.nationality == "Netherlands"
        assert result.conflicts == []

    def test_name_is_never_merged(self, engine, bergwijn):
        engine.merge_profile(bergwijn.id, "api_football", NormalizedProfile(name="S. Bergwijn"))

        assert bergwijn.name == "Steven Bergwijn"

    def test_snapshot_stored(self, db_session, engine, bergwijn):
        raw = {"id": 737066, "name": "Steven Bergwijn"}

        result = engine.merge_profile(
            bergwijn.id, "fotmob", NormalizedProfile(name="Steven Bergwijn", birth_date=date(1997, 10, 8)), raw,
        )

        snapshot = db_session.query(ProviderPlayerProfile).one()
        assert result.profile_stored
        assert snapshot.profile == raw
        assert snapshot.normalized["birth_date"] == "1997-10-08"

    def test_injected_precedence(self, db_session, bergwijn):
        """A swapped policy changes the outcome without touching the engine."""
        precedence = FieldPrecedence.default().with_priority("birth_date", "fotmob", 500)
        engine = CanonicalMergeEngine(db_session, precedence=precedence)

        engine.merge_profile(bergwijn.id, "fotmob", NormalizedProfile(birth_date=date(1997, 10, 9)))

        assert bergwijn.birth_date == date(1997, 10, 9)
        assert bergwijn.field_sources["birth_date"] == "fotmob"

    def test_unknown_player(self, engine):
        with pytest.raises(NotFoundError):
            engine.merge_profile(999999, "fotmob", NormalizedProfile(height_cm=178))


class TestResolveConflict:
    """Tests for manual conflict resolution."""

    @pytest.fixture
    def conflict(self, db_session, engine, bergwijn):
        engine.merge_profile(bergwijn.id, "fotmob", NormalizedProfile(birth_date=date(1997, 10, 9)))
        return db_session.query(PlayerFieldConflict).one()

    def test_accept_value(self, engine, bergwijn, conflict):
        resolved = engine.resolve_conflict(conflict.id, "1997-10-09", resolved_by="scout")

        assert resolved.resolved
        assert resolved.resolved_value == "1997-10-09"
        assert resolved.resolved_by == "scout"
        assert bergwijn.birth_date == date(1997, 10, 9)
        assert bergwijn.field_sources["birth_date"] == MANUAL_SOURCE

    def test_manual_value_survives_later_merges(self, engine, bergwijn, conflict):
        engine.resolve_conflict(conflict.id, "1997-10-09")

        engine.merge_profile(bergwijn.id, "api_football", NormalizedProfile(birth_date=date(1997, 10, 8)))

        assert bergwijn.birth_date == date(1997, 10, 9)

    def test_disagreement_reopens(self, engine, bergwijn, conflict):
        engine.resolve_conflict(conflict.id, "1997-10-08")

        engine.merge_profile(bergwijn.id, "fotmob", NormalizedProfile(birth_date=date(1997, 10, 9)))

        assert [c.id for c in engine.unresolved_conflicts(bergwijn.id)] == [conflict.id]

    def test_unknown_conflict(self, engine):
        with pytest.raises(NotFoundError):
            engine.resolve_conflict(999999, "x")


class TestProviderAggregates:
    """Tests for storing provider-reported aggregates."""

    def test_store_and_upsert(self, db_session, engine, bergwijn):
        stats = ProviderAggregateStats(appearances=30, minutes=2400, goals=10, assists=5, xg=8.4, goals_per90=0.375)

        engine.store_provider_aggregates(bergwijn.id, "fotmob", stats, window="season", season="2024/2025")
        engine.store_provider_aggregates(
            bergwijn.id, "fotmob", ProviderAggregateStats(appearances=31, minutes=2490, goals=11), window="season",
        )

        row = db_session.query(ProviderPlayerAggregate).one()
        assert row.minutes == 2490
        assert row.totals == {"appearances": 31, "goals": 11}
        assert row.per90 is None
        assert row.season is None

    def test_totals_and_per90_split(self, db_session, engine, bergwijn):
        stats = ProviderAggregateStats(appearances=30, goals=10, xg=8.4, goals_per90=0.375, rating=7.1)

        row = engine.store_provider_aggregates(bergwijn.id, "fotmob", stats, window="career")

        assert row.totals == {"appearances": 30, "goals": 10, "xg": 8.4}
        assert row.per90 == {"goals": 0.375}
        assert row.additional_stats == {"xg": 8.4, "rating": 7.1}

    def test_invalid_window(self, engine, bergwijn):
        with pytest.raises(ValueError, match="window"):
            engine.store_provider_aggregates(bergwijn.id, "fotmob", ProviderAggregateStats(), window="month")
