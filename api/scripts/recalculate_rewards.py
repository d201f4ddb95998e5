#!/usr/bin/env python3
"""
Reward Recalculation Script

Recomputes every profile's pending_reward from its activity, the same batch
the admin endpoint runs, and writes a JSON report of the changes.

Usage (from within the API container):
    python /workspace/api/scripts/recalculate_rewards.py

Options:
    --dry-run        Compute and report without writing
    --cutoff TS      ISO 8601 cutoff; activity after it is ignored
                     (default: FUNFARM_REWARD_CUTOFF, else now)
    --user-id ID     Only this profile (repeatable)
    --report PATH    Write the per-user report to PATH
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Add the api directory to the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from funfarm.db import SessionLocal  # noqa: E402
from funfarm.services.reward_recalculation import recalculate_all_rewards  # noqa: E402


def parse_cutoff(value: str) -> datetime:
    cutoff = datetime.fromisoformat(value)
    if cutoff.tzinfo is None:
        cutoff = cutoff.replace(tzinfo=timezone.utc)
    return cutoff


def main():
    parser = argparse.ArgumentParser(description="Recalculate pending CAMLY rewards for all profiles")
    parser.add_argument("--dry-run", action="store_true", help="Preview without making changes")
    parser.add_argument(
        "--cutoff", type=parse_cutoff, help="ISO 8601 cutoff timestamp (default: FUNFARM_REWARD_CUTOFF, else now)"
    )
    parser.add_argument("--user-id", type=UUID, action="append", dest="user_ids", help="Only this profile")
    parser.add_argument("--report", type=Path, help="Write a JSON report to this path")
    args = parser.parse_args()

    logger.info("=" * 60)
    logger.info("Reward Recalculation")
    logger.info("=" * 60)
    if args.dry_run:
        logger.info("DRY RUN MODE - No changes will be made")

    db = SessionLocal()
    start_time = time.time()
    try:
        report = recalculate_all_rewards(db, cutoff=args.cutoff, user_ids=args.user_ids, dry_run=args.dry_run)
    finally:
        db.close()
    elapsed_time = time.time() - start_time

    changed = [r for r in report.results if r.difference != 0 or r.current_approved]
    for r in changed:
        logger.info(
            f"  {r.user_id} ({r.display_name or '-'}): "
            f"{r.current_pending}+{r.current_approved} -> {r.calculated_total} ({r.difference:+d})"
        )

    logger.info("=" * 60)
    logger.info(f"Cutoff: {report.cutoff.isoformat()}")
    logger.info(f"Profiles processed: {report.processed}")
    logger.info(f"Profiles changed: {report.updated}")
    logger.info(f"Total before: {report.total_before:,}")
    logger.info(f"Total after: {report.total_after:,}")
    logger.info(f"Elapsed time: {elapsed_time:.1f}s")

    if args.report:
        with open(args.report, "w") as fp:
            json.dump(
                {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "cutoff": report.cutoff.isoformat(),
                    "dry_run": args.dry_run,
                    "processed": report.processed,
                    "updated": report.updated,
                    "total_before": report.total_before,
                    "total_after": report.total_after,
                    "changes": [
                        {
                            "user_id": str(r.user_id),
                            "display_name": r.display_name,
                            "old_pending": r.current_pending,
                            "old_approved": r.current_approved,
                            "new_total": r.calculated_total,
                            "difference": r.difference,
                        }
                        for r in changed
                    ],
                },
                fp,
                indent=2,
                ensure_ascii=False,
            )
        logger.info(f"Report written to: {args.report}")

    logger.info("=" * 60)


if __name__ == "__main__":
    main()
