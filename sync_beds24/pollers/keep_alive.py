"""
Scheduled refresh-token keep-alive (daily cron / Kubernetes CronJob).

Beds24 discards refresh tokens that go unused for 30 days. Connections
whose last token exchange is older than KEEP_ALIVE_IDLE_DAYS get one
forced refresh so quiet hotels stay connected.
"""

import structlog

from sync_beds24.db.engine import engine
from sync_beds24.logging_config import setup_logging
from sync_beds24.services.connections import keep_alive_connections

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    summary = keep_alive_connections(engine=engine)
    if summary["failure_count"]:
        logger.warning(
            "keep_alive_failures",
            failure_count=summary["failure_count"],
            errors=summary["errors"],
        )


if __name__ == "__main__":
    main()
