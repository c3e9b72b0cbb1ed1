#!/usr/bin/env python3
"""Drain the job queue (BrightData chain, product analysis).

Usage:
    python scripts/run_job_worker.py            # run due jobs once
    python scripts/run_job_worker.py --loop 5   # poll every 5 seconds

Exits 0 when every job in the last batch completed, 1 otherwise.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.db.session import SessionLocal
from app.pipeline.executor import DEFAULT_BATCH_SIZE, run_due_jobs

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def run_once(limit: int) -> dict:
    db = SessionLocal()
    try:
        return run_due_jobs(db, limit=limit)
    finally:
        db.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run queued Null Fake jobs")
    parser.add_argument("--limit", type=int, default=DEFAULT_BATCH_SIZE)
    parser.add_argument(
        "--loop",
        type=float,
        default=0,
        metavar="SECONDS",
        help="Keep polling with this interval instead of exiting after one batch",
    )
    args = parser.parse_args(argv)

    try:
        while True:
            result = run_once(args.limit)
            print(f"processed={result['processed']} failed={result['failed']}")
            if args.loop <= 0:
                return 0 if result["failed"] == 0 else 1
            time.sleep(args.loop)
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
