#!/usr/bin/env python3
"""
Recompute rolling stats and player ratings.

Normal usage (every player with a competition, window ending today):
    python scripts/compute_ratings.py

One country or one competition:
    python scripts/compute_ratings.py --country Netherlands
    python scripts/compute_ratings.py --competition-id 12

Explicit window:
    python scripts/compute_ratings.py --from 2025-01-01 --to 2025-12-31

Dry run (compute everything, write nothing):
    python scripts/compute_ratings.py --dry-run
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scoutrank.config import settings
from scoutrank.db import get_session
from scoutrank.ratings.pipeline import RatingPipeline

logging.basicConfig(
    level=settings.log_level,
    format=settings.log_format,
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recompute rolling stats and player ratings.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--competition-id", type=int, default=None, help="Only this competition.")
    scope.add_argument("--country", default=None, help="Only competitions of this country.")
    parser.add_argument("--from", dest="from_date", type=_parse_date, default=None,
                        help="Window start (default: window end minus rating_window_days).")
    parser.add_argument("--to", dest="to_date", type=_parse_date, default=None,
                        help="Window end (default: today).")
    parser.add_argument("--min-minutes", type=int, default=None,
                        help=f"Minimum minutes to be rated (default: {settings.rating_min_minutes}).")
    parser.add_argument("--dry-run", action="store_true", help="Compute ratings but do not write them.")
    parser.add_argument("--metrics-json", default=None, help="Write a JSON summary to this path on completion.")
    return parser


def main() -> int:
    args = _build_parser().parse_args()

    with get_session() as session:
        pipeline = RatingPipeline(session, min_minutes=args.min_minutes)
        try:
            result = pipeline.recompute(
                competition_id=args.competition_id,
                country=args.country,
                from_date=args.from_date,
                to_date=args.to_date,
                dry_run=args.dry_run,
            )
        except ValueError as exc:
            logger.error("Rating run failed: %s", exc)
            return 1

    print(result.summary())

    if args.metrics_json:
        metrics_path = Path(args.metrics_json)
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_path.write_text(
            json.dumps({"status": "success", **result.to_dict()}, indent=2) + "\n",
            encoding="utf-8",
        )

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
