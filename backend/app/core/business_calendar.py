"""
Business calendar helpers.

Daily token sequences roll over at midnight in one fixed time zone
(settings.business_timezone), regardless of server locale. Timestamps are
stored in UTC; naive values read back from SQLite are treated as UTC.
"""

from datetime import date, datetime, time, timezone
from functools import lru_cache
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from backend.app.core.config import settings


@lru_cache(maxsize=None)
def business_tz(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or settings.business_timezone)


def utc_now() -> datetime:
    """Current instant, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def business_date(moment: datetime) -> date:
    """Date-only key of an instant in the business time zone."""
    return as_utc(moment).astimezone(business_tz()).date()


def business_today() -> date:
    return business_date(utc_now())


def business_day_bounds(
    date_from: Optional[date],
    date_to: Optional[date]
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Convert an inclusive business-date range into inclusive UTC bounds.

    Returns (start, end) where start <= created_at <= end. Either side may be None.
    """
    tz = business_tz()
    start = end = None
    if date_from is not None:
        start = datetime.combine(date_from, time.min, tzinfo=tz).astimezone(timezone.utc)
    if date_to is not None:
        end = datetime.combine(date_to, time.max, tzinfo=tz).astimezone(timezone.utc)
    return start, end
