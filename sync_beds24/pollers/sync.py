"""
Scheduled sync entry point (cron / Kubernetes CronJob).

Closes sync logs abandoned by crashed workers, then syncs every active
connection. When the shared credit budget runs out the pass waits for the
window to reset once and resumes; a second exhaustion ends the run.
"""

import time

import structlog

from sync_beds24.config import DRY_RUN
from sync_beds24.errors import RateLimitError
from sync_beds24.logging_config import setup_logging
from sync_beds24.network.ratelimit import backoff_delay
from sync_beds24.services.sync import sync_all_connections
from sync_beds24.services.sync_runs import fail_stale_syncs
from sync_beds24.db.engine import engine

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    stale = fail_stale_syncs(engine)
    if stale:
        logger.warning("stale_sync_logs_failed", count=stale)

    try:
        sync_all_connections(engine=engine, dry_run=DRY_RUN)
    except RateLimitError as e:
        delay = backoff_delay(e.resets_in)
        logger.warning("credit_budget_exhausted", resets_in=e.resets_in, sleeping=delay)
        time.sleep(delay)
        sync_all_connections(engine=engine, dry_run=DRY_RUN)


if __name__ == "__main__":
    main()
