#!/usr/bin/env python3
"""
Seed the default rating profiles (one per position group).

Usage:
    python scripts/seed_rating_profiles.py
    python scripts/seed_rating_profiles.py --force    # replace existing profiles

Update one group's weights from a JSON file:
    python scripts/seed_rating_profiles.py --update ATT --weights att.json

    att.json: {"weights": {"goals_per90": 3, ...}, "invert_metrics": ["cards_penalty_per90"]}
"""

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scoutrank.config import settings
from scoutrank.db import UpdateLog, get_session
from scoutrank.ratings.pipeline import seed_rating_profiles, update_rating_profile

logging.basicConfig(
    level=settings.log_level,
    format=settings.log_format,
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed or update rating profiles.")
    parser.add_argument("--force", action="store_true", help="Replace existing profiles with the defaults.")
    parser.add_argument("--update", metavar="GROUP", default=None, help="Position group to update (GK/DEF/MID/ATT).")
    parser.add_argument("--weights", metavar="FILE", default=None, help="JSON file with weights and invert_metrics.")
    args = parser.parse_args()

    if args.update:
        if not args.weights:
            parser.error("--update requires --weights")
        data = json.loads(Path(args.weights).read_text(encoding="utf-8"))
        with get_session() as session:
            try:
                update_rating_profile(
                    session,
                    args.update.upper(),
                    data.get("weights", {}),
                    data.get("invert_metrics", []),
                )
            except ValueError as exc:
                logger.error("Profile update rejected: %s", exc)
                return 1
        print(f"Updated {args.update.upper()} profile")
        return 0

    with get_session() as session:
        result = seed_rating_profiles(session, force=args.force)
        if result.seeded:
            session.add(UpdateLog(
                update_type="seed_profiles",
                details={"count": result.count, "force": args.force},
                success=True,
            ))

    if result.seeded:
        print(f"Seeded {result.count} rating profiles")
    else:
        print(f"{result.count} profiles already exist (use --force to replace)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
