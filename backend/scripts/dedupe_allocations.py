"""Remove duplicate points allocations written before credits were serialized.

Keeps the earliest allocation per (user_id, external_event_id) and deletes
the rest. Balances are not adjusted; reconcile them separately if needed.

Usage:
    python -m scripts.dedupe_allocations [--dry-run]

Requires: DATABASE_URL env var (or .env).
"""

import argparse
import logging

from app.core.database import SessionLocal
from app.services.points.accounts import find_duplicate_allocation_ids, remove_duplicate_allocations

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Remove duplicate points allocation records")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report how many rows would be deleted",
    )
    args = parser.parse_args()

    with SessionLocal() as db:
        if args.dry_run:
            duplicates = find_duplicate_allocation_ids(db)
            print(f"{len(duplicates)} duplicate allocation records would be removed")
            return

        removed = remove_duplicate_allocations(db)
        print(f"Removed {removed} duplicate allocation records")


if __name__ == "__main__":
    main()
