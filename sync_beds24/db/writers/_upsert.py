"""
Generic upsert helper with IS DISTINCT FROM optimization.

Shared by the property and booking writers: a row is only rewritten when its
raw payload actually changed, so updated_at reflects real changes.
"""

from typing import Any

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Connection


def upsert_with_distinct_check(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_columns: list[str],
    distinct_column: str = "raw_payload",
    update_columns: list[str] | None = None,
) -> int:
    """
    Perform upsert with IS DISTINCT FROM optimization.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., RemoteProperty, Booking)
        rows: List of row dicts to upsert
        conflict_columns: Columns of the unique key used for ON CONFLICT
        distinct_column: Column to check for changes (default: "raw_payload")
        update_columns: Columns to update on conflict (default: [distinct_column, "updated_at"])

    Returns:
        int: Number of rows inserted or changed

    Example:
        >>> with engine.begin() as conn:
        ...     upsert_with_distinct_check(
        ...         conn=conn,
        ...         table=Booking,
        ...         rows=[{"remote_booking_id": 1, "raw_payload": {...}, ...}],
        ...         conflict_columns=["remote_booking_id"],
        ...     )
    """
    if not rows:
        return 0

    if update_columns is None:
        update_columns = [distinct_column, "updated_at"]

    stmt = insert(table).values(rows)

    set_dict = {col: getattr(stmt.excluded, col) for col in update_columns}

    distinct_check = getattr(table, distinct_column).is_distinct_from(
        getattr(stmt.excluded, distinct_column)
    )

    stmt = stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_=set_dict,
        where=distinct_check,
    )

    result = conn.execute(stmt)
    return int(result.rowcount or 0)
