#!/usr/bin/env python3
"""
Order Key Health Check

Reports key length statistics for every ordered list of every project
(roadmap steps, properties, documents and the dashboard card layout) and
optionally rewrites degenerate lists with fresh, evenly spaced keys.

Usage:
    # Report only (default):
    python scripts/check_order_keys.py

    # Reindex every list over the threshold:
    python scripts/check_order_keys.py --apply

    # Against a specific database, with per-list details:
    python scripts/check_order_keys.py --database-url sqlite:///leasetrack_dev.db --verbose

Exit codes:
    0 success (or nothing needs reindexing)
    1 error, or lists need reindexing and --apply was not given

Idempotent: running again after --apply reports no lists over the threshold.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from leasetrack.database import (
    ORDERED_COLLECTIONS,
    PersistenceError,
    Project,
    configure_engine,
    get_db_context,
)
from leasetrack.ordering import KeyStats, key_stats
from leasetrack.services import DASHBOARD_CARDS, load_items, reindex_items

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# --- Collect ------------------------------------------------------------------

def collect_stats(max_length: Optional[int] = None) -> List[Tuple[str, str, KeyStats]]:
    """Key statistics per (project, list)."""
    with get_db_context() as db:
        project_ids = [str(pid) for (pid,) in db.query(Project.id).order_by(Project.created_at).all()]

    results = []
    for project_id in project_ids:
        for collection in [*ORDERED_COLLECTIONS, DASHBOARD_CARDS]:
            items = load_items(project_id, collection)
            results.append((project_id, collection, key_stats(items, max_length)))
    return results


# --- Reporting ----------------------------------------------------------------

def summarize(results: List[Tuple[str, str, KeyStats]]) -> str:
    lists = len(results)
    degenerate = [r for r in results if r[2].needs_reindexing]
    longest = max((stats.max_length for _, _, stats in results), default=0)
    return (
        f"Checked {lists} lists: {len(degenerate)} need reindexing "
        f"(longest key: {longest} characters)"
    )


def verbose_dump(results: List[Tuple[str, str, KeyStats]]) -> None:
    for project_id, collection, stats in results:
        flag = "REINDEX" if stats.needs_reindexing else "ok"
        print(
            f"  {project_id} {collection:<18} items={stats.count:<4} "
            f"avg={stats.average_length:<6.2f} max={stats.max_length:<4} {flag}"
        )


# --- Main ---------------------------------------------------------------------

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check and repair order key lengths for all project lists.")
    parser.add_argument("--database-url", help="Database to check (default: DATABASE_URL / SQLITE_PATH)")
    parser.add_argument("--max-length", type=int, default=None, help="Reindex threshold (default: ORDER_KEY_MAX_LENGTH)")
    parser.add_argument("--apply", action="store_true", help="Reindex lists over the threshold")
    parser.add_argument("--verbose", action="store_true", help="Show statistics for every list")
    args = parser.parse_args(argv)

    load_dotenv()
    if args.database_url:
        configure_engine(args.database_url)

    try:
        results = collect_stats(args.max_length)
    except PersistenceError as e:
        print(f"Error: failed to read lists: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        verbose_dump(results)
    print(summarize(results))

    degenerate = [(pid, collection) for pid, collection, stats in results if stats.needs_reindexing]
    if not degenerate:
        print("All keys within limits.")
        return 0

    if not args.apply:
        print("Dry run; re-run with --apply to reindex.")
        return 1

    for project_id, collection in degenerate:
        try:
            reindex_items(project_id, collection)
        except PersistenceError as e:
            print(f"Failed to reindex {collection} for project {project_id}: {e}", file=sys.stderr)
            return 1
        logger.info(f"Reindexed {collection} for project {project_id}")

    print(f"Reindexed {len(degenerate)} lists.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
