"""Date and datetime helpers.

Usage:
    from invtrack.utils.datetime_utils import utc_now, parse_local_date

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)

    # Build dates arrive as "YYYY-MM-DD" with no time component
    build_date = parse_local_date("2025-03-14")
"""

from datetime import date, datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def parse_local_date(value: Union[str, date, datetime]) -> date:
    """Parse a local calendar date.

    Accepts a ``date``, a ``datetime`` (the time part is dropped) or an ISO
    "YYYY-MM-DD" string.

    Raises:
        ValueError: If the string is not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def as_naive_utc(value: Optional[datetime]) -> datetime:
    """Comparable naive UTC datetime; None sorts first.

    SQLite returns stored timestamps without tzinfo while freshly created
    rows still hold the aware value from utc_now().
    """
    if value is None:
        return datetime.min
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)
