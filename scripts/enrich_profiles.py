#!/usr/bin/env python3
"""
Link and merge provider player profiles from saved JSON responses.

Each file holds one profile payload (FotMob playerData, SofaScore player,
or one item of API-Football's /players response), or a list of them.

Usage:
    python scripts/enrich_profiles.py --provider fotmob data/fotmob/*.json
    python scripts/enrich_profiles.py --provider api_football --competition-id 12 players.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scoutrank.config import settings
from scoutrank.db import get_session
from scoutrank.providers.profiles import PROFILE_PARSERS
from scoutrank.services.profile_enrichment import enrich_profiles

logging.basicConfig(
    level=settings.log_level,
    format=settings.log_format,
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Enrich players from provider profile payloads.")
    parser.add_argument("files", nargs="+", type=Path)
    parser.add_argument("--provider", required=True, choices=sorted(PROFILE_PARSERS))
    parser.add_argument("--competition-id", type=int, default=None,
                        help="Competition scope for name matching and new players.")
    args = parser.parse_args()

    payloads = []
    for path in args.files:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Skipping %s: %s", path, exc)
            continue
        # API-Football wraps items in "response"
        if isinstance(data, dict) and isinstance(data.get("response"), list):
            data = data["response"]
        payloads.extend(data if isinstance(data, list) else [data])
    logger.info("Loaded %d %s profiles", len(payloads), args.provider)

    with get_session() as session:
        stats = enrich_profiles(session, args.provider, payloads, competition_id=args.competition_id)

    print(stats.summary())
    return 0 if not stats.errors else 2


if __name__ == "__main__":
    raise SystemExit(main())
