"""Time utilities for timezone-aware UTC datetimes."""

from datetime import UTC, date, datetime
from typing import List, Tuple


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime for defaults and onupdate hooks."""
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite hands stored values back without tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def last_n_months(today: date, n: int = 12) -> List[Tuple[int, int]]:
    # returns list from oldest to newest
    year = today.year
    month = today.month
    months = []
    for _ in range(n):
        months.append((year, month))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(months))


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """Return the half-open ``[start, next_start)`` UTC range of a calendar month."""
    start = datetime(year, month, 1, tzinfo=UTC)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=UTC)
    else:
        end = datetime(year, month + 1, 1, tzinfo=UTC)
    return start, end
