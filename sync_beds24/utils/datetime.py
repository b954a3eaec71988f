"""UTC datetime utilities."""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    Use this instead of datetime.now() or datetime.utcnow() so every stored
    timestamp is timezone-aware.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def date_range(start: date, end: date) -> Iterator[date]:
    """
    Yield each day from start to end, inclusive.

    Example:
        >>> list(date_range(date(2024, 1, 30), date(2024, 2, 1)))
        [datetime.date(2024, 1, 30), datetime.date(2024, 1, 31), datetime.date(2024, 2, 1)]
    """
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
