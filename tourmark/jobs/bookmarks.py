"""CLI for managing bookmarks from a terminal session.

Anonymous bookmarks live in the JSON file named by BOOKMARKS_LOCAL_PATH; passing
``--subject`` establishes an identity, which merges that file into PostgreSQL
before the command runs.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from tourmark.bookmarks.engine import BookmarkSession, resolve_bookmarks
from tourmark.core.config import get_settings
from tourmark.core.db import PostgresBookmarkStore, init_schema
from tourmark.core.errors import ConfigurationError, TourmarkError
from tourmark.core.local_store import JsonFileLocalStore
from tourmark.core.models import Identity
from tourmark.etl.sorting import SORT_LATEST, sort_bookmarked
from tourmark.vendors import tour_api

logger = logging.getLogger(__name__)


def build_session(local_path: Optional[str] = None) -> BookmarkSession:
    path = local_path or get_settings().local_bookmarks_path
    return BookmarkSession(PostgresBookmarkStore(), JsonFileLocalStore(path))


async def run_command(session: BookmarkSession, identity: Identity, args: argparse.Namespace) -> Dict[str, Any]:
    if args.command == "toggle":
        result = await session.toggle(identity, args.poi_id)
        return {"poi_id": args.poi_id, "bookmarked": result.bookmarked}

    if args.command == "status":
        return {"poi_id": args.poi_id, "bookmarked": await session.is_bookmarked(identity, args.poi_id)}

    if args.command == "delete":
        return {"deleted": await session.delete_many(identity, args.poi_ids)}

    if args.command == "merge":
        report = await session.merge(identity)
        return {"merged": report.merged, "failed": report.failed}

    bookmarks = await session.list_mine(identity)
    entries = await resolve_bookmarks(bookmarks, tour_api) if args.resolve else [(b, None) for b in bookmarks]
    items: List[Dict[str, Any]] = []
    for bookmark, record in sort_bookmarked(entries, args.sort_by):
        items.append(
            {
                "poi_id": bookmark.poi_id,
                "created_at": bookmark.created_at.isoformat() if bookmark.created_at else None,
                "title": record.title if record else None,
            }
        )
    return {"bookmarks": items}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage tour bookmarks")
    parser.add_argument("--subject", dest="subject_id", help="Identity provider subject id (omit for anonymous)")
    parser.add_argument("--local-path", dest="local_path", help="Override the anonymous bookmark file")
    commands = parser.add_subparsers(dest="command", required=True)

    toggle = commands.add_parser("toggle", help="Bookmark or un-bookmark a place")
    toggle.add_argument("poi_id")

    status = commands.add_parser("status", help="Show whether a place is bookmarked")
    status.add_argument("poi_id")

    delete = commands.add_parser("delete", help="Remove several bookmarks at once")
    delete.add_argument("poi_ids", nargs="+")

    commands.add_parser("merge", help="Move anonymous bookmarks into the signed-in account")
    commands.add_parser("init-schema", help="Create the users and bookmarks tables if missing")

    listing = commands.add_parser("list", help="List bookmarks")
    listing.add_argument("--sort", dest="sort_by", default=SORT_LATEST, help="latest, name or region")
    listing.add_argument("--resolve", action="store_true", help="Fetch place titles from the tour API")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args()
    identity = Identity(subject_id=args.subject_id, established=bool(args.subject_id))
    session = build_session(args.local_path)

    try:
        if args.command == "init-schema":
            init_schema()
            output: Dict[str, Any] = {"schema": "ok"}
        else:
            output = asyncio.run(run_command(session, identity, args))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except TourmarkError as exc:
        logger.error("Bookmark command failed: %s", exc)
        raise SystemExit(1) from exc

    json.dump(output, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


if __name__ == "__main__":
    main()
