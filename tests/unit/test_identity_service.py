"""
Unit tests for PlayerIdentityService.
"""

from datetime import date

import pytest

from scoutrank.db.models import Appearance, Player, PlayerExternalId, UnresolvedExternalPlayer
from scoutrank.exceptions import NotFoundError
from scoutrank.players.identity import ExternalPlayerRecord, PlayerIdentityService
from scoutrank.players.merge import CanonicalMergeEngine, NormalizedProfile

BERGWIJN_DOB = date(1997, 10, 8)


@pytest.fixture
def service(db_session):
    return PlayerIdentityService(db_session)


def _record(name, provider="fotmob", provider_player_id="1", **kwargs):
    return ExternalPlayerRecord(provider=provider, provider_player_id=provider_player_id, name=name, **kwargs)


def _link(db_session, player, provider, provider_player_id):
    link = PlayerExternalId(
        player_id=player.id, provider=provider, provider_player_id=provider_player_id, confidence=1,
    )
    db_session.add(link)
    db_session.flush()
    return link


class TestResolve:
    """Tests for the read-only resolution decision."""

    def test_existing_link_wins(self, db_session, service, bergwijn):
        """A linked provider ID resolves with confidence 1.0 regardless of the name."""
        _link(db_session, bergwijn, "fotmob", "737066")

        result = service.resolve(_record("Somebody Else", provider_player_id="737066"))

        assert result.status == "matched"
        assert result.player_id == bergwijn.id
        assert result.confidence == 1.0
        assert result.reason == "existing_external_id"

    def test_no_candidates(self, service):
        result = service.resolve(_record("Brian Brobbey"))

        assert result.status == "new"
        assert result.is_new
        assert result.player_id is None
        assert result.reason == "no_candidates_found"

    def test_exact_name_and_birth_date_links(self, service, bergwijn):
        """Same normalized name and birth date clears the confidence threshold."""
        result = service.resolve(_record("Steven Bergwijn", birth_date=BERGWIJN_DOB))

        assert result.status == "matched"
        assert result.player_id == bergwijn.id
        assert result.confidence >= 0.92
        assert result.reason.startswith("single_match")

    def test_exact_name_without_birth_date_is_not_enough(self, service, bergwijn):
        """Name alone (plus nationality) stays below the threshold and is ambiguous."""
        result = service.resolve(_record("Steven Bergwijn", nationality="Netherlands"))

        assert result.status == "ambiguous"
        assert result.player_id is None
        assert result.confidence == pytest.approx(0.65)
        assert result.reason == "low_confidence_65%"
        assert result.candidate_ids == [bergwijn.id]

    def test_birth_date_mismatch_drops_candidate(self, service, make_player):
        """A namesake born on a different day is not a candidate at all."""
        make_player("Luuk de Jong", birth_date=date(1990, 8, 27))

        result = service.resolve(_record("Luuk de Jong", birth_date=date(2001, 3, 3)))

        assert result.status == "new"
        assert result.reason == "no_candidates_found"

    def test_namesakes_without_evidence_are_ambiguous(self, service, make_player):
        first = make_player("Luuk de Jong")
        second = make_player("Luuk de Jong")

        result = service.resolve(_record("Luuk de Jong"))

        assert result.status == "ambiguous"
        assert result.player_id is None
        assert result.reason == "ambiguous_multiple_candidates_2"
        assert sorted(result.candidate_ids) == sorted([first.id, second.id])

    def test_clear_winner_among_namesakes(self, service, make_player):
        """The namesake with the matching birth date wins by a clear margin."""
        make_player("Luuk de Jong")
        right = make_player("Luuk de Jong", birth_date=date(1990, 8, 27))

        result = service.resolve(_record("Luuk de Jong", birth_date=date(1990, 8, 27)))

        assert result.status == "matched"
        assert result.player_id == right.id
        assert result.reason.startswith("best_match_clear_winner")

    def test_similar_name_on_team_is_a_candidate(self, service, make_player, competition, team):
        """A typo is only searched within the team, and never auto-linked."""
        player = make_player(
            "Steven Bergwijn", birth_date=BERGWIJN_DOB, competition_id=competition.id, team_id=team.id,
        )

        scoped = service.resolve(_record("Steven Bergwyn", birth_date=BERGWIJN_DOB), team_id=team.id)
        unscoped = service.resolve(_record("Steven Bergwyn", birth_date=BERGWIJN_DOB))

        assert scoped.status == "ambiguous"
        assert scoped.candidate_ids == [player.id]
        assert scoped.reason.startswith("low_confidence_")
        assert unscoped.reason == "no_candidates_found"

    def test_score_is_bounded(self, service, make_player):
        player = make_player("Steven Bergwijn", birth_date=BERGWIJN_DOB, nationality="Netherlands")

        candidate = service.score_candidate(
            _record("Steven Bergwijn", birth_date=BERGWIJN_DOB, nationality="Netherlands"), player,
        )

        assert candidate.score <= 1.0
        assert "exact_name_match" in candidate.reasons
        assert "birthdate_match" in candidate.reasons
        assert "nationality_match" in candidate.reasons


class TestResolveAndLink:
    """Tests for resolution with persistence."""

    def test_two_providers_same_player(self, db_session, service):
        """The second provider's submission lands on the first one's canonical player."""
        first = service.resolve_and_link(_record(
            "Steven Bergwijn", provider="api_football", provider_player_id="1098",
            birth_date=BERGWIJN_DOB, nationality="Netherlands",
        ))
        players_before = db_session.query(Player).count()

        second = service.resolve_and_link(_record(
            "Steven Bergwijn", provider="fotmob", provider_player_id="737066",
            birth_date=BERGWIJN_DOB, nationality="Netherlands",
        ))

        assert first.player_created
        assert second.player_id == first.player_id
        assert second.resolution.confidence >= 0.92
        assert not second.player_created
        assert db_session.query(Player).count() == players_before

        links = db_session.query(PlayerExternalId).filter_by(player_id=first.player_id).all()
        assert {link.provider for link in links} == {"api_football", "fotmob"}

    def test_created_player_records_sources(self, db_session, service):
        outcome = service.resolve_and_link(_record(
            "Brian Brobbey", provider="api_football", birth_date=date(2002, 2, 1), position="F",
        ))

        player = db_session.get(Player, outcome.player_id)
        assert player.position_group == "ATT"
        assert player.field_sources["birth_date"] == "api_football"
        assert player.field_sources["position_group"] == "api_football"
        assert "nationality" not in player.field_sources

    def test_same_record_twice_converges(self, db_session, service):
        record = _record(
            "Steven Bergwijn", provider="api_football", provider_player_id="1098",
            birth_date=BERGWIJN_DOB, nationality="Netherlands",
        )

        first = service.resolve_and_link(record)
        second = service.resolve_and_link(record)

        assert second.player_id == first.player_id
        assert not second.player_created
        assert second.resolution.reason == "existing_external_id"
        assert db_session.query(Player).count() == 1
        assert db_session.query(PlayerExternalId).count() == 1

    @pytest.mark.parametrize("position", [None, "Substitute"])
    def test_unknown_position_leaves_group_open(self, db_session, service, position):
        """The MID placeholder is not credited to the creating provider."""
        outcome = service.resolve_and_link(_record(
            "Mika Godts", provider="api_football", birth_date=date(2005, 10, 7), position=position,
        ))
        player = db_session.get(Player, outcome.player_id)

        assert player.position_group == "MID"
        assert "position_group" not in player.field_sources

        merge = CanonicalMergeEngine(db_session).merge_profile(
            player.id, "fotmob", NormalizedProfile(position_group="ATT"),
        )

        assert player.position_group == "ATT"
        assert merge.conflicts == []

    def test_ambiguous_goes_to_review_queue(self, db_session, service, make_player):
        """Never auto-link an ambiguous record, even to the front runner."""
        make_player("Luuk de Jong")
        make_player("Luuk de Jong")
        players_before = db_session.query(Player).count()

        outcome = service.resolve_and_link(_record("Luuk de Jong", provider_player_id="99"), payload={"id": 99})

        assert outcome.queued
        assert outcome.player_id is None
        assert db_session.query(Player).count() == players_before
        assert db_session.query(PlayerExternalId).count() == 0

        item = db_session.query(UnresolvedExternalPlayer).one()
        assert item.status == "pending"
        assert item.reason == "ambiguous_multiple_candidates_2"
        assert len(item.candidate_player_ids) == 2
        assert item.payload["raw"] == {"id": 99}

    def test_requeue_refreshes_item(self, db_session, service, bergwijn):
        service.resolve_and_link(_record("Steven Bergwijn", provider_player_id="5"))
        service.resolve_and_link(_record("Steven Bergwijn", provider_player_id="5", nationality="Netherlands"))

        items = db_session.query(UnresolvedExternalPlayer).all()
        assert len(items) == 1
        assert items[0].reason == "low_confidence_65%"

    def test_no_create_queues_unknown_player(self, db_session, service):
        outcome = service.resolve_and_link(_record("Brian Brobbey"), create_if_new=False)

        assert outcome.queued
        assert db_session.query(Player).count() == 0
        assert db_session.query(UnresolvedExternalPlayer).one().reason == "no_candidates_found"

    def test_get_linked_player_id(self, db_session, service, bergwijn):
        _link(db_session, bergwijn, "sofascore", "826643")

        assert service.get_linked_player_id("sofascore", "826643") == bergwijn.id
        assert service.get_linked_player_id("sofascore", "1") is None


class TestUpsertExternalLink:
    def test_updates_in_place(self, db_session, service, bergwijn):
        service.upsert_external_link(bergwijn.id, "fotmob", "737066", confidence=0.93)
        db_session.flush()
        service.upsert_external_link(bergwijn.id, "fotmob", "737066", confidence=1.0)
        db_session.flush()

        links = db_session.query(PlayerExternalId).all()
        assert len(links) == 1
        assert float(links[0].confidence) == 1.0

    def test_provider_id_moves_to_new_player(self, db_session, service, bergwijn, make_player):
        """A reviewer correction re-points the provider ID."""
        other = make_player("Steven Berghuis")
        _link(db_session, bergwijn, "fotmob", "737066")

        service.upsert_external_link(other.id, "fotmob", "737066", confidence=1.0)
        db_session.flush()

        assert service.get_linked_player_id("fotmob", "737066") == other.id
        assert db_session.query(PlayerExternalId).count() == 1


class TestReviewQueue:
    """Tests for manual resolution of queued records."""

    @pytest.fixture
    def queued_item(self, db_session, service, make_player):
        make_player("Luuk de Jong")
        make_player("Luuk de Jong")
        service.resolve_and_link(_record("Luuk de Jong", provider="sofascore", provider_player_id="42"))
        return db_session.query(UnresolvedExternalPlayer).one()

    def test_pending_items(self, service, queued_item):
        assert [item.id for item in service.pending_review_items()] == [queued_item.id]

    def test_match(self, db_session, service, queued_item):
        target = queued_item.candidate_player_ids[0]

        result = service.resolve_review_item(queued_item.id, "match", player_id=target, resolved_by="scout")

        assert result == target
        assert queued_item.status == "matched"
        assert queued_item.resolved_by == "scout"
        assert queued_item.resolved_at is not None
        assert service.get_linked_player_id("sofascore", "42") == target
        assert service.pending_review_items() == []

    def test_create(self, db_session, service, queued_item):
        players_before = db_session.query(Player).count()

        result = service.resolve_review_item(queued_item.id, "create")

        assert queued_item.status == "new_player"
        assert db_session.query(Player).count() == players_before + 1
        assert service.get_linked_player_id("sofascore", "42") == result

    def test_ignore(self, service, queued_item):
        assert service.resolve_review_item(queued_item.id, "ignore") is None
        assert queued_item.status == "ignored"
        assert service.get_linked_player_id("sofascore", "42") is None

    def test_match_requires_player_id(self, service, queued_item):
        with pytest.raises(ValueError):
            service.resolve_review_item(queued_item.id, "match")

    def test_match_unknown_player(self, service, queued_item):
        with pytest.raises(NotFoundError):
            service.resolve_review_item(queued_item.id, "match", player_id=999999)

    def test_unknown_action(self, service, queued_item):
        with pytest.raises(ValueError, match="Unknown action"):
            service.resolve_review_item(queued_item.id, "delete")

    def test_unknown_item(self, service):
        with pytest.raises(NotFoundError):
            service.resolve_review_item(999999, "ignore")


class TestMergePlayers:
    """Tests for merging duplicate canonical players."""

    def test_merge_moves_links_and_appearances(self, db_session, service, make_player, competition):
        keep = make_player("Steven Bergwijn", competition_id=competition.id)
        duplicate = make_player("S. Bergwijn", birth_date=BERGWIJN_DOB, competition_id=competition.id)
        _link(db_session, keep, "api_football", "1098")
        _link(db_session, duplicate, "fotmob", "737066")
        _link(db_session, duplicate, "api_football", "5555")
        db_session.add(Appearance(
            player_id=duplicate.id, competition_id=competition.id, provider="api_football",
            provider_fixture_id="1035", match_date=date(2025, 9, 14), minutes=90, stats={"goals": 1},
        ))
        db_session.flush()
        duplicate_id = duplicate.id

        service.merge_players(keep.id, duplicate_id)

        assert db_session.get(Player, duplicate_id) is None
        assert service.get_linked_player_id("fotmob", "737066") == keep.id
        # keep already had an api_football ID; the duplicate's is dropped
        assert service.get_linked_player_id("api_football", "1098") == keep.id
        assert service.get_linked_player_id("api_football", "5555") is None
        assert db_session.query(Appearance).filter_by(player_id=keep.id).count() == 1
        assert keep.birth_date == BERGWIJN_DOB
        assert keep.field_sources["birth_date"] == "api_football"

    def test_merge_unknown_player(self, service, bergwijn):
        with pytest.raises(NotFoundError):
            service.merge_players(bergwijn.id, 999999)
