"""
Salon-local time helpers.

Timestamps are persisted as naive UTC. Anything that depends on a calendar day
(working windows, "today", weekday lookups) is computed in the salon's own
timezone, never in the server's local time.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as naive UTC (storage representation)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def salon_zone(tz_name: Optional[str]) -> ZoneInfo:
    """Resolve a salon's timezone, falling back to the configured default"""
    try:
        return ZoneInfo(tz_name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"⚠️ Unknown salon timezone {tz_name!r}, using {DEFAULT_TIMEZONE}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def to_utc_naive(value: datetime, tz: ZoneInfo) -> datetime:
    """Normalize an incoming datetime to naive UTC.

    Naive values are taken as salon-local wall time.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_local(value: datetime, tz: ZoneInfo) -> datetime:
    """Convert a stored naive-UTC datetime to an aware salon-local datetime"""
    return value.replace(tzinfo=timezone.utc).astimezone(tz)


def local_wall_to_utc(day: date, wall: time, tz: ZoneInfo) -> datetime:
    """Salon-local wall clock time on ``day`` as naive UTC"""
    return to_utc_naive(datetime.combine(day, wall), tz)


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """[midnight, next midnight) of a salon-local day, as naive UTC"""
    start = local_wall_to_utc(day, time.min, tz)
    end = local_wall_to_utc(day + timedelta(days=1), time.min, tz)
    return start, end


def local_today(now_utc: datetime, tz: ZoneInfo) -> date:
    return to_local(now_utc, tz).date()


def day_of_week(day: date) -> int:
    """Weekday index used by schedule templates: 0=Sunday ... 6=Saturday"""
    return (day.weekday() + 1) % 7
