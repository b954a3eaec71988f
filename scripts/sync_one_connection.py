"""
Run a sync pass for a single Beds24 connection from the command line.

    python scripts/sync_one_connection.py <connection_id> [--bookings-only] [--dry-run]
"""

import argparse
from uuid import UUID

import structlog

from sync_beds24.logging_config import setup_logging
from sync_beds24.services.sync import pull_bookings, sync_connection

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Sync one Beds24 connection")
    parser.add_argument("connection_id", type=UUID, help="Local connection ID")
    parser.add_argument("--bookings-only", action="store_true", help="Skip the property import")
    parser.add_argument("--dry-run", action="store_true", help="Pull without writing data rows")
    args = parser.parse_args()

    logger.info("manual_sync_started", connection_id=str(args.connection_id))

    try:
        if args.bookings_only:
            pull_bookings(args.connection_id, dry_run=args.dry_run)
        else:
            sync_connection(args.connection_id, dry_run=args.dry_run)
        logger.info("manual_sync_completed", connection_id=str(args.connection_id))
    except Exception:
        logger.exception("manual_sync_failed", connection_id=str(args.connection_id))
        raise


if __name__ == "__main__":
    main()
