#!/usr/bin/env python3
"""
Work the identity review queue and field conflicts.

Usage:
  python scripts/review_queue.py list [--limit 50]
  python scripts/review_queue.py match REVIEW_ID PLAYER_ID
  python scripts/review_queue.py create REVIEW_ID
  python scripts/review_queue.py ignore REVIEW_ID
  python scripts/review_queue.py conflicts PLAYER_ID
  python scripts/review_queue.py accept CONFLICT_ID VALUE
  python scripts/review_queue.py merge KEEP_ID MERGE_ID [--execute]
"""

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scoutrank.config import settings
from scoutrank.db import Player, UpdateLog, get_session
from scoutrank.exceptions import NotFoundError
from scoutrank.players.identity import PlayerIdentityService
from scoutrank.players.merge import CanonicalMergeEngine

logging.basicConfig(
    level=settings.log_level,
    format=settings.log_format,
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Review unresolved provider players and field conflicts.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--by", default="cli", help="Name recorded as the resolver.")
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="Show pending review items.")
    list_cmd.add_argument("--limit", type=int, default=50)

    match_cmd = sub.add_parser("match", help="Link a review item to an existing player.")
    match_cmd.add_argument("review_id", type=int)
    match_cmd.add_argument("player_id", type=int)

    create_cmd = sub.add_parser("create", help="Create a new player from a review item.")
    create_cmd.add_argument("review_id", type=int)

    ignore_cmd = sub.add_parser("ignore", help="Ignore a review item.")
    ignore_cmd.add_argument("review_id", type=int)

    conflicts_cmd = sub.add_parser("conflicts", help="Show open field conflicts for a player.")
    conflicts_cmd.add_argument("player_id", type=int)

    accept_cmd = sub.add_parser("accept", help="Resolve a conflict by accepting a value (JSON or plain string).")
    accept_cmd.add_argument("conflict_id", type=int)
    accept_cmd.add_argument("value")

    merge_cmd = sub.add_parser("merge", help="Merge a duplicate player into another.")
    merge_cmd.add_argument("keep_id", type=int)
    merge_cmd.add_argument("merge_id", type=int)
    merge_cmd.add_argument("--execute", action="store_true", help="Apply the merge (default: preview only).")
    return parser


def _parse_value(raw: str):
    """Numbers and null as JSON, anything else as the literal string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _list(session, limit: int) -> None:
    items = PlayerIdentityService(session).pending_review_items(limit)
    if not items:
        print("Review queue is empty")
        return
    for item in items:
        confidence = f"{float(item.top_confidence):.2f}" if item.top_confidence is not None else "-"
        print(
            f"[{item.id}] {item.provider}:{item.provider_player_id}  {item.scraped_name!r}  "
            f"conf={confidence}  reason={item.reason}  candidates={item.candidate_player_ids or []}"
        )
        for player_id in item.candidate_player_ids or []:
            player = session.get(Player, player_id)
            if player:
                print(f"      {player.id}: {player.name} ({player.birth_date or '?'}, {player.nationality or '?'})")


def _merge(session, keep_id: int, merge_id: int, execute: bool, resolved_by: str) -> None:
    keep = session.get(Player, keep_id)
    merge = session.get(Player, merge_id)
    if keep is None:
        raise NotFoundError("Player", keep_id)
    if merge is None:
        raise NotFoundError("Player", merge_id)

    print(f"Keep:  {keep.id} {keep.name} ({keep.birth_date or '?'})")
    print(f"Merge: {merge.id} {merge.name} ({merge.birth_date or '?'})")
    if not execute:
        print("Dry run. Use --execute to apply.")
        return

    PlayerIdentityService(session).merge_players(keep_id, merge_id)
    session.add(UpdateLog(
        update_type="merge_players",
        details={"keep_id": keep_id, "merge_id": merge_id, "by": resolved_by},
        success=True,
    ))
    print("Merged")


def main() -> int:
    args = _build_parser().parse_args()

    with get_session() as session:
        service = PlayerIdentityService(session)
        try:
            if args.command == "list":
                _list(session, args.limit)
            elif args.command == "match":
                service.resolve_review_item(args.review_id, "match", args.player_id, resolved_by=args.by)
                print(f"Review item {args.review_id} linked to player {args.player_id}")
            elif args.command == "create":
                player_id = service.resolve_review_item(args.review_id, "create", resolved_by=args.by)
                print(f"Review item {args.review_id} created player {player_id}")
            elif args.command == "ignore":
                service.resolve_review_item(args.review_id, "ignore", resolved_by=args.by)
                print(f"Review item {args.review_id} ignored")
            elif args.command == "conflicts":
                conflicts = CanonicalMergeEngine(session).unresolved_conflicts(args.player_id)
                if not conflicts:
                    print("No open conflicts")
                for c in conflicts:
                    print(f"[{c.id}] {c.field}: canonical={c.canonical_value!r}  {c.provider}={c.provider_value!r}")
            elif args.command == "accept":
                conflict = CanonicalMergeEngine(session).resolve_conflict(
                    args.conflict_id, _parse_value(args.value), resolved_by=args.by,
                )
                print(f"Conflict {conflict.id} resolved: {conflict.field} = {conflict.resolved_value!r}")
            elif args.command == "merge":
                _merge(session, args.keep_id, args.merge_id, args.execute, args.by)
        except (NotFoundError, ValueError) as exc:
            logger.error("%s", exc)
            return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
