#!/usr/bin/env python3
"""
Ingest API-Football fixture player statistics from saved JSON responses.

Each file holds one /fixtures/players response body. The fixture ID and
match date are read from the file's "parameters" and an optional
"fixture" object ({"id": ..., "date": ...}); --match-date overrides.

Usage:
    python scripts/ingest_appearances.py --competition-id 12 data/fixtures/*.json
    python scripts/ingest_appearances.py --competition-id 12 --no-create fixture_1035.json
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scoutrank.config import settings
from scoutrank.db import Competition, get_session
from scoutrank.providers.fixtures import parse_api_football_fixture_players
from scoutrank.services.appearance_ingestion import ingest_appearances

logging.basicConfig(
    level=settings.log_level,
    format=settings.log_format,
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def load_fixture_file(path: Path, match_date_override: str | None = None):
    """Parse one saved response into ProviderAppearance records."""
    body = json.loads(path.read_text(encoding="utf-8"))
    fixture = body.get("fixture") or {}
    fixture_id = fixture.get("id") or (body.get("parameters") or {}).get("fixture")
    if fixture_id is None:
        raise ValueError(f"{path}: no fixture id in 'fixture' or 'parameters'")
    match_date = match_date_override or fixture.get("date")
    return parse_api_football_fixture_players(body.get("response") or [], str(fixture_id), match_date)


def main() -> int:
    parser = argparse.ArgumentParser(description="Ingest fixture player stats from JSON files.")
    parser.add_argument("files", nargs="+", type=Path)
    parser.add_argument("--competition-id", type=int, required=True)
    parser.add_argument("--match-date", default=None, help="Override match date (YYYY-MM-DD) for all files.")
    parser.add_argument("--no-create", action="store_true",
                        help="Queue unmatched players for review instead of creating them.")
    args = parser.parse_args()

    appearances = []
    for path in args.files:
        try:
            appearances.extend(load_fixture_file(path, args.match_date))
        except (OSError, ValueError) as exc:
            logger.error("Skipping %s: %s", path, exc)
    logger.info("Parsed %d appearances from %d files", len(appearances), len(args.files))

    with get_session() as session:
        competition = session.get(Competition, args.competition_id)
        if competition is None:
            logger.error("Competition %s not found", args.competition_id)
            return 1
        stats = ingest_appearances(session, appearances, competition, create_players=not args.no_create)

    print(stats.summary())
    return 0 if not stats.errors else 2


if __name__ == "__main__":
    raise SystemExit(main())
