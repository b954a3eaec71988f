"""
SQLAlchemy engine singleton with connection pooling.

One engine per process. Sync runs and API handlers open short transactions
from it; no transaction spans more than one Beds24 call.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from sync_beds24.config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")

engine: Engine = create_engine(
    DATABASE_URL,
    future=True,
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,  # detect connections dropped by the server
    pool_recycle=3600,
    echo=False,
)


def check_engine_health() -> bool:
    """
    Check that the database answers a trivial query.

    Used by the /ready endpoint and by the integration test fixtures.

    Returns:
        bool: True if database is reachable, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
