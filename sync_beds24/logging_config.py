from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, cast

import structlog

from sync_beds24.config import LOG_LEVEL
from sync_beds24.utils.redaction import redact

# Type alias for structlog processor
Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask tokens and guest contact details in log events."""
    exc_info = event_dict.pop("exc_info", None)
    redacted = cast(MutableMapping[str, Any], redact(dict(event_dict)))
    if exc_info is not None:
        redacted["exc_info"] = exc_info
    return redacted


def setup_logging() -> None:
    """
    Configures structured logging globally using structlog.

    LOG_LEVEL=INFO renders JSON lines for the log pipeline, anything else
    renders the coloured console format used during development.
    """
    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s:%(lineno)d: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=LOG_LEVEL,
    )

    # Beds24 calls go through requests; keep urllib3 connection chatter out
    for noisy_logger in [
        "urllib3",
        "requests",
        "uvicorn.access",
        "alembic.runtime.migration",
    ]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    renderer: Processor = cast(
        Processor,
        (
            structlog.processors.JSONRenderer()
            if LOG_LEVEL == "INFO"
            else structlog.dev.ConsoleRenderer(colors=True)
        ),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_secrets,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
