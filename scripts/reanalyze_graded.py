#!/usr/bin/env python3
"""Queue re-analysis of poorly graded products.

Usage:
    python scripts/reanalyze_graded.py                     # grades D,F, up to 50
    python scripts/reanalyze_graded.py --grades C,D,F --limit 200
    python scripts/reanalyze_graded.py --asin B08N5WRWNW --country gb
    python scripts/reanalyze_graded.py --dry-run           # list, queue nothing

Queued jobs run with scripts/run_job_worker.py or /internal/run_jobs.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.db.session import SessionLocal
from app.pipeline.reanalysis import (
    DEFAULT_GRADES,
    DEFAULT_LIMIT,
    DEFAULT_MIN_FAKE_PERCENTAGE,
    enqueue_graded_reanalysis,
    enqueue_reanalysis,
)
from app.services.amazon_url import normalize_country
from app.services.asin_store import find_reanalysis_candidates, get_asin_data

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Queue re-analysis of graded products")
    parser.add_argument("--grades", default=",".join(DEFAULT_GRADES), help="Comma-separated grades")
    parser.add_argument("--limit", type=int, default=DEFAULT_LIMIT)
    parser.add_argument("--min-fake", type=float, default=DEFAULT_MIN_FAKE_PERCENTAGE)
    parser.add_argument("--asin", help="Re-analyze a single product instead of a batch")
    parser.add_argument("--country", default="us")
    parser.add_argument("--dry-run", action="store_true", help="List candidates without queueing")
    args = parser.parse_args(argv)

    grades = [g.strip().upper() for g in args.grades.split(",") if g.strip()]
    db = SessionLocal()
    try:
        if args.asin:
            asin, country = args.asin.strip().upper(), normalize_country(args.country)
            if get_asin_data(db, asin, country) is None:
                print(f"ERROR: no stored product {asin}/{country}", file=sys.stderr)
                return 1
            if not args.dry_run:
                job_id = enqueue_reanalysis(db, asin, country)
                print(f"queued {asin}/{country} job_run_id={job_id}")
            return 0

        if args.dry_run:
            for record in find_reanalysis_candidates(db, grades, args.limit, args.min_fake):
                print(f"{record.asin}\t{record.country.upper()}\t{record.grade}\t{record.fake_percentage}%")
            return 0

        queued = enqueue_graded_reanalysis(db, grades, args.limit, args.min_fake)
        print(f"queued={len(queued)}")
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
