"""
Timezone utilities for the SATI platform.

Booking dates and times are wall-clock values in the business time zone, so
every "now" comparison made by the admission engine happens in that zone.
"""

from datetime import date, datetime, time, timezone

import pytz

from .config import settings


def get_business_timezone() -> pytz.BaseTzInfo:
    return pytz.timezone(settings.business_timezone)


def business_now() -> datetime:
    """Current wall-clock time in the business time zone (naive)."""
    return datetime.now(get_business_timezone()).replace(tzinfo=None)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def booking_instant(booking_date: date, start_time: time) -> datetime:
    """Compose the naive local instant at which a booking starts."""
    return datetime.combine(booking_date, start_time)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600.0


def days_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 86400.0


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes read back from SQLite as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
