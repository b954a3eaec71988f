"""
FastAPI dependency providers.

Routes take the engine through Depends(get_db_engine) so tests can swap it
with app.dependency_overrides:

    app.dependency_overrides[get_db_engine] = lambda: mock_engine
"""

from __future__ import annotations

from typing import Generator

from sqlalchemy.engine import Engine

from sync_beds24.db.engine import engine


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide the shared SQLAlchemy engine.

    Yields:
        Engine: SQLAlchemy database engine
    """
    yield engine
