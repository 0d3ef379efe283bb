"""
Appearance ingestion service: processes per-match player stats into the database.

Each ProviderAppearance becomes (or updates) one Appearance row, keyed by
(provider, provider_fixture_id, player_id). Re-ingesting a fixture is
idempotent: minutes, stats and date are overwritten in place.

Player resolution goes through the identity service. An appearance whose
provider ID is already linked uses that player. Otherwise, if the
provider supplied a name, the record is resolved like any other provider
record: a new player is created when nobody matches, and an uncertain
match is queued for review (and the appearance skipped until a reviewer
links it).

Usage:
    from scoutrank.services.appearance_ingestion import ingest_appearances

    appearances = parse_api_football_fixture_players(response, fixture_id, match_date)
    with get_session() as session:
        stats = ingest_appearances(session, appearances, competition)
"""

import logging
from dataclasses import dataclass, field
from itertools import islice
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from scoutrank.db.models import Appearance, Competition, Team
from scoutrank.players.identity import ExternalPlayerRecord, PlayerIdentityService
from scoutrank.providers.fixtures import ProviderAppearance

logger = logging.getLogger(__name__)

BATCH_SIZE = 100

AppearanceKey = tuple[str, str, int]


@dataclass
class AppearanceIngestionStats:
    """Statistics from an appearance ingestion run."""
    total_appearances: int = 0
    appearances_created: int = 0
    appearances_updated: int = 0
    players_created: int = 0
    skipped_no_minutes: int = 0
    skipped_no_player: int = 0
    skipped_queued: int = 0
    errors: list[str] = field(default_factory=list)

    def summary(self) -> str:
        """Return a human-readable summary of ingestion results."""
        lines = [
            "Appearance ingestion complete:",
            f"  Total appearances:        {self.total_appearances}",
            f"  Appearances created:      {self.appearances_created}",
            f"  Appearances updated:      {self.appearances_updated}",
            f"  Players created:          {self.players_created}",
            f"  Skipped (no minutes):     {self.skipped_no_minutes}",
            f"  Skipped (no player):      {self.skipped_no_player}",
            f"  Skipped (queued):         {self.skipped_queued}",
        ]
        if self.errors:
            lines.append(f"  Errors: {len(self.errors)}")
            for err in self.errors[:5]:
                lines.append(f"    - {err}")
            if len(self.errors) > 5:
                lines.append(f"    ... and {len(self.errors) - 5} more")
        return "\n".join(lines)


def ingest_appearances(
    session: Session,
    appearances: Sequence[ProviderAppearance],
    competition: Competition,
    identity_service: Optional[PlayerIdentityService] = None,
    create_players: bool = True,
) -> AppearanceIngestionStats:
    """
    Process a list of ProviderAppearance objects into Appearance rows.

    Work is done in batches of BATCH_SIZE, each inside a savepoint. A
    batch that fails is retried row by row so one bad appearance only
    costs itself. The caller commits.

    Args:
        session: SQLAlchemy database session
        appearances: Parsed provider appearances
        competition: Competition these fixtures belong to
        identity_service: Service for resolving provider IDs (created if None)
        create_players: Create canonical players for unmatched provider IDs

    Returns:
        AppearanceIngestionStats with counts of what happened
    """
    identity_service = identity_service or PlayerIdentityService(session)
    stats = AppearanceIngestionStats(total_appearances=len(appearances))
    teams = _preload_teams(session, competition.id)
    player_cache: dict[tuple[str, str], Optional[int]] = {}

    for batch in _chunked(list(appearances), BATCH_SIZE):
        _process_batch(session, batch, stats, competition, teams, identity_service, player_cache, create_players)

    logger.info(stats.summary())
    return stats


def _chunked(items: list[ProviderAppearance], size: int) -> list[list[ProviderAppearance]]:
    """Split a list into fixed-size chunks."""
    if size <= 0:
        return [items]
    iterator = iter(items)
    chunks: list[list[ProviderAppearance]] = []
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return chunks
        chunks.append(chunk)


def _preload_teams(session: Session, competition_id: int) -> dict[tuple[str, str], int]:
    return {
        (team.provider, team.provider_team_id): team.id
        for team in session.query(Team).filter(Team.competition_id == competition_id)
    }


def _increment(stats: AppearanceIngestionStats, result: str) -> None:
    if result == "created":
        stats.appearances_created += 1
    elif result == "updated":
        stats.appearances_updated += 1
    elif result == "no_minutes":
        stats.skipped_no_minutes += 1
    elif result == "no_player":
        stats.skipped_no_player += 1
    elif result == "queued":
        stats.skipped_queued += 1


def _process_batch(
    session: Session,
    batch: list[ProviderAppearance],
    stats: AppearanceIngestionStats,
    competition: Competition,
    teams: dict[tuple[str, str], int],
    identity_service: PlayerIdentityService,
    player_cache: dict[tuple[str, str], Optional[int]],
    create_players: bool,
) -> None:
    batch_cache = dict(player_cache)
    results: list[tuple[str, bool]] = []
    try:
        with session.begin_nested():
            for appearance in batch:
                results.append(_process_single(
                    session, appearance, competition, teams, identity_service, batch_cache, create_players,
                ))
            session.flush()

        player_cache.update(batch_cache)
        for result, created_player in results:
            _increment(stats, result)
            if created_player:
                stats.players_created += 1
        return
    except Exception as batch_error:
        logger.warning(
            "Appearance batch failed; retrying row-by-row for %d appearances: %s",
            len(batch),
            batch_error,
        )

    for appearance in batch:
        # Players created inside a rolled-back savepoint must not stay cached
        row_cache = dict(player_cache)
        try:
            with session.begin_nested():
                result, created_player = _process_single(
                    session, appearance, competition, teams, identity_service, row_cache, create_players,
                )
                session.flush()
            player_cache.update(row_cache)
            _increment(stats, result)
            if created_player:
                stats.players_created += 1
        except Exception as e:
            error_msg = f"{appearance.provider}:{appearance.provider_player_id} fixture {appearance.provider_fixture_id}: {e}"
            stats.errors.append(error_msg)
            logger.error("Error processing appearance: %s", error_msg)


def _process_single(
    session: Session,
    appearance: ProviderAppearance,
    competition: Competition,
    teams: dict[tuple[str, str], int],
    identity_service: PlayerIdentityService,
    player_cache: dict[tuple[str, str], Optional[int]],
    create_players: bool,
) -> tuple[str, bool]:
    """
    Process one appearance.

    Returns:
        (status, created_player). Status is one of "created", "updated",
        "no_minutes", "no_player" or "queued".
    """
    if appearance.minutes is None or appearance.minutes <= 0:
        return "no_minutes", False

    team_id = None
    if appearance.provider_team_id is not None:
        team_id = teams.get((appearance.provider, appearance.provider_team_id))

    player_id, created_player, queued = _resolve_player(
        appearance, competition, team_id, identity_service, player_cache, create_players,
    )
    if queued:
        return "queued", False
    if player_id is None:
        logger.warning(
            "Could not resolve player %s:%s", appearance.provider, appearance.provider_player_id,
        )
        return "no_player", False

    existing = session.query(Appearance).filter(
        Appearance.provider == appearance.provider,
        Appearance.provider_fixture_id == appearance.provider_fixture_id,
        Appearance.player_id == player_id,
    ).first()

    if existing:
        existing.minutes = appearance.minutes
        existing.match_date = appearance.match_date
        existing.stats = appearance.stats.to_dict()
        if team_id is not None:
            existing.team_id = team_id
        return "updated", created_player

    session.add(Appearance(
        player_id=player_id,
        competition_id=competition.id,
        team_id=team_id,
        provider=appearance.provider,
        provider_fixture_id=appearance.provider_fixture_id,
        match_date=appearance.match_date,
        minutes=appearance.minutes,
        stats=appearance.stats.to_dict(),
    ))
    return "created", created_player


def _resolve_player(
    appearance: ProviderAppearance,
    competition: Competition,
    team_id: Optional[int],
    identity_service: PlayerIdentityService,
    player_cache: dict[tuple[str, str], Optional[int]],
    create_players: bool,
) -> tuple[Optional[int], bool, bool]:
    """Returns (player_id, created_player, queued)."""
    key = (appearance.provider, appearance.provider_player_id)
    if key in player_cache:
        return player_cache[key], False, False

    player_id = identity_service.get_linked_player_id(*key)
    if player_id is not None or not appearance.player_name:
        player_cache[key] = player_id
        return player_id, False, False

    outcome = identity_service.resolve_and_link(
        ExternalPlayerRecord(
            provider=appearance.provider,
            provider_player_id=appearance.provider_player_id,
            name=appearance.player_name,
            position=appearance.player_position,
            provider_team_id=appearance.provider_team_id,
            provider_competition_id=competition.provider_league_id,
        ),
        payload={"fixture_id": appearance.provider_fixture_id},
        competition_id=competition.id,
        team_id=team_id,
        create_if_new=create_players,
    )
    if outcome.queued:
        return None, False, True

    player_cache[key] = outcome.player_id
    return outcome.player_id, outcome.player_created, False
