"""Time helpers shared by services.

Stored timestamps are UTC; day, week and month buckets are computed in the
configured timezone.
"""

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from src.core.config import settings


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse a stored or client-supplied timestamp into an aware UTC datetime.

    Accepts ISO-8601 with or without offset (``Z`` included). Naive values are
    taken to be UTC.

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp
    """
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def to_local(value: datetime) -> datetime:
    return value.astimezone(local_tz())


def local_date(value: datetime) -> date:
    """Calendar date of a timestamp in the configured timezone."""
    return to_local(value).date()


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return [midnight, next midnight) of a local calendar day as UTC datetimes."""
    tz = local_tz()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def local_today(now: datetime | None = None) -> date:
    return local_date(now or utc_now())
