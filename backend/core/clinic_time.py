"""Civil calendar helpers for the clinic's single time zone.

Every date decision (closing days, start of day) goes through here so the rest of
the code never does time-zone math. Naive datetimes are read as UTC, which is how
instants come back from the database.
"""

from datetime import date, datetime, time, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from backend.core import config


@lru_cache(maxsize=None)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def clinic_zone() -> ZoneInfo:
    return _zone(config.CLINIC_TIMEZONE)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def to_civil_date(instant: datetime) -> tuple[date, int]:
    """Return the clinic calendar date of ``instant`` and its weekday (Monday is 0)."""
    local = as_aware(instant).astimezone(clinic_zone())
    return local.date(), local.weekday()


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=clinic_zone())


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time(23, 59, 59), tzinfo=clinic_zone())


def ranges_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end
