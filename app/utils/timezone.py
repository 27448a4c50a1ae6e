"""Clock and timezone helpers.

All timestamps are stored as naive UTC datetimes; the clinic timezone is only
used to render dates in human-facing text.
"""
from datetime import datetime
import pytz

from app.config import settings

CLINIC_TZ = pytz.timezone(settings.clinic_timezone)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime"""
    return datetime.now(pytz.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Normalize an incoming datetime to naive UTC (naive input is assumed UTC)"""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.utc).replace(tzinfo=None)


def convert_to_clinic_tz(dt: datetime | None) -> datetime | None:
    """
    Convert UTC naive datetime to the clinic timezone for display.

    Args:
        dt: Naive datetime assumed to be in UTC, or None

    Returns:
        Naive datetime in the clinic timezone, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        utc_dt = pytz.utc.localize(dt)
        return utc_dt.astimezone(CLINIC_TZ).replace(tzinfo=None)
    return dt


def format_clinic_date(dt: datetime) -> str:
    return convert_to_clinic_tz(dt).strftime("%d/%m/%Y %H:%M")
