"""
UTC helpers. Timestamps are stored as UTC; SQLite hands them back naive,
PostgreSQL hands them back aware, so everything read from the database goes
through ``as_utc`` before arithmetic.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def end_of_day_exclusive(day: date) -> datetime:
    """First instant of the following day; used as an exclusive upper bound."""
    return start_of_day(day + timedelta(days=1))


def days_between(earlier: datetime, later: Optional[datetime] = None) -> float:
    later = later or utcnow()
    return (as_utc(later) - as_utc(earlier)).total_seconds() / 86400
