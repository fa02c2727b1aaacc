from datetime import datetime, date, time, timedelta, timezone
from typing import Optional, Tuple, Union


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def week_range(when: Optional[Union[datetime, date]] = None) -> Tuple[datetime, datetime]:
    """
    Sunday-to-Sunday window containing *when* (default: now).

    start is the most recent Sunday at 00:00, end is start + 7 days and is
    exclusive. Aware datetimes are converted to UTC first.
    """
    if when is None:
        when = utcnow()
    if isinstance(when, datetime):
        if when.tzinfo is not None:
            when = when.astimezone(timezone.utc).replace(tzinfo=None)
        day = when.date()
    else:
        day = when

    # Monday=0 .. Sunday=6  ->  days since Sunday
    days_since_sunday = (day.weekday() + 1) % 7
    start = datetime.combine(day - timedelta(days=days_since_sunday), time.min)
    return start, start + timedelta(days=7)


def parse_datetime(value: str) -> datetime:
    """Accept 'YYYY-MM-DD' or an ISO-8601 datetime (a trailing 'Z' is allowed)."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
