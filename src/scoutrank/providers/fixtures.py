"""
Per-match player statistics from providers.

ProviderAppearance is the provider-independent shape consumed by
services.appearance_ingestion: everything the provider said about one
player in one match, before any identity resolution.

Currently parses API-Football's /fixtures/players response.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Optional

from scoutrank.providers.utils import as_float, as_int, as_str, get_path, parse_iso_date
from scoutrank.ratings.aggregate import AppearanceStats

logger = logging.getLogger(__name__)


@dataclass
class ProviderAppearance:
    """
    One player's line in one fixture, as reported by a provider.

    The player name/position are carried along so ingestion can create
    or resolve the player without a separate profile fetch.
    """
    provider: str
    provider_player_id: str
    provider_fixture_id: str
    match_date: date
    minutes: int
    provider_team_id: Optional[str] = None
    player_name: Optional[str] = None
    player_position: Optional[str] = None
    stats: AppearanceStats = field(default_factory=AppearanceStats)

    def __repr__(self) -> str:
        return (
            f"<ProviderAppearance({self.provider}:{self.provider_player_id}, "
            f"fixture={self.provider_fixture_id}, minutes={self.minutes})>"
        )


def _parse_accuracy(value: Any) -> Optional[float]:
    """API-Football reports pass accuracy as "84" or "84%"."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    return as_float(value)


def parse_api_football_fixture_players(
    response: list[Mapping[str, Any]],
    fixture_id: str,
    match_date: Any,
) -> list[ProviderAppearance]:
    """
    Parse the `response` array of API-Football's /fixtures/players.

    Players without minutes (unused substitutes) are dropped.

    Args:
        response: One entry per team, each with a `players` list
        fixture_id: The provider fixture ID
        match_date: A date, or an ISO date/datetime string

    Returns:
        List of ProviderAppearance, in payload order

    Raises:
        ValueError: If match_date can't be parsed
    """
    if not isinstance(match_date, date):
        parsed = parse_iso_date(match_date)
        if parsed is None:
            raise ValueError(f"Invalid match date for fixture {fixture_id}: {match_date!r}")
        match_date = parsed

    appearances = []
    for team_stats in response:
        team_id = as_str(get_path(team_stats, "team", "id"))
        for entry in team_stats.get("players") or []:
            statistics = entry.get("statistics") or []
            if not statistics:
                continue
            s = statistics[0]

            minutes = as_int(get_path(s, "games", "minutes"))
            if not minutes or minutes <= 0:
                continue

            appearances.append(ProviderAppearance(
                provider="api_football",
                provider_player_id=str(get_path(entry, "player", "id")),
                provider_fixture_id=str(fixture_id),
                match_date=match_date,
                minutes=minutes,
                provider_team_id=team_id,
                player_name=get_path(entry, "player", "name"),
                player_position=get_path(s, "games", "position"),
                stats=AppearanceStats(
                    goals=as_float(get_path(s, "goals", "total")),
                    assists=as_float(get_path(s, "goals", "assists")),
                    yellow_cards=as_float(get_path(s, "cards", "yellow")),
                    red_cards=as_float(get_path(s, "cards", "red")),
                    shots=as_float(get_path(s, "shots", "total")),
                    shots_on_target=as_float(get_path(s, "shots", "on")),
                    passes=as_float(get_path(s, "passes", "total")),
                    pass_accuracy=_parse_accuracy(get_path(s, "passes", "accuracy")),
                    key_passes=as_float(get_path(s, "passes", "key")),
                    tackles=as_float(get_path(s, "tackles", "total")),
                    interceptions=as_float(get_path(s, "tackles", "interceptions")),
                    blocks=as_float(get_path(s, "tackles", "blocks")),
                    duels_won=as_float(get_path(s, "duels", "won")),
                    duels_total=as_float(get_path(s, "duels", "total")),
                    dribbles=as_float(get_path(s, "dribbles", "attempts")),
                    dribbles_successful=as_float(get_path(s, "dribbles", "success")),
                    fouls_committed=as_float(get_path(s, "fouls", "committed")),
                    fouls_drawn=as_float(get_path(s, "fouls", "drawn")),
                    saves=as_float(get_path(s, "goals", "saves")),
                    goals_conceded=as_float(get_path(s, "goals", "conceded")),
                    penalties_saved=as_float(get_path(s, "penalty", "saved")),
                    penalties_missed=as_float(get_path(s, "penalty", "missed")),
                ),
            ))

    logger.debug("Parsed %d appearances from fixture %s", len(appearances), fixture_id)
    return appearances
