"""Time helpers. All persisted timestamps are naive UTC."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from .config import BUSINESS_TIMEZONE

_business_tz = ZoneInfo(BUSINESS_TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize an incoming datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_business_time(value: datetime) -> datetime:
    """Convert a naive UTC timestamp to wall-clock time in the business timezone."""
    return value.replace(tzinfo=timezone.utc).astimezone(_business_tz)
