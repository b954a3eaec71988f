import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sync_beds24.config import ALLOWED_ORIGINS
from sync_beds24.logging_config import setup_logging
from sync_beds24.middleware import RequestIDMiddleware
from sync_beds24.routes.connections import router as connections_router
from sync_beds24.routes.health import router as health_router
from sync_beds24.routes.metrics import router as metrics_router
from sync_beds24.routes.properties import router as properties_router
from sync_beds24.routes.webhook import router as webhook_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Beds24 Sync API",
    description="Connect hotels to Beds24 and sync properties, inventory, rates and bookings",
    version="1.0.0",
)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(connections_router, prefix="/beds24", tags=["Connections"])
app.include_router(properties_router, prefix="/beds24", tags=["Properties"])
app.include_router(webhook_router, prefix="/beds24", tags=["Webhooks"])


@app.on_event("startup")
def startup_event() -> None:
    """Close sync logs left running by a previous process."""
    from sync_beds24.db.engine import engine
    from sync_beds24.services.sync_runs import fail_stale_syncs

    logger.info("application_starting")
    try:
        stale = fail_stale_syncs(engine)
        logger.info("application_initialized", stale_sync_logs_failed=stale)
    except Exception as e:
        logger.exception("stale_sync_cleanup_failed", error=str(e))
