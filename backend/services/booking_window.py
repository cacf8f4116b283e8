"""Earliest date a patient may book a doctor."""

import calendar
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from backend.core import config
from backend.core.clinic_time import as_aware, start_of_day, to_civil_date
from backend.models.user import Specialization

logger = logging.getLogger(__name__)

DEFAULT_MIN_BOOKING_LEAD_DAYS = config.MIN_BOOKING_LEAD_DAYS

ClosedDayPolicy = Callable[[int, Specialization | str | None], bool]


def _specialization_name(specialization: Specialization | str | None) -> str | None:
    if isinstance(specialization, Specialization):
        return specialization.value
    if isinstance(specialization, str) and specialization.strip():
        return specialization.strip()
    return None


def is_saturday_open(specialization: Specialization | str | None) -> bool:
    name = _specialization_name(specialization)
    if name is None:
        return False
    return name.lower() in {value.lower() for value in config.SATURDAY_OPEN_SPECIALIZATIONS}


def is_closed_day(weekday, specialization: Specialization | str | None) -> bool:
    """Clinic closing days: Sundays always, Saturdays unless the practice opens them.

    A weekday that is not a valid ``date.weekday()`` value counts as closed.
    """
    if isinstance(weekday, bool) or not isinstance(weekday, int) or not 0 <= weekday <= 6:
        return True

    if weekday == calendar.SUNDAY:
        return True

    if weekday == calendar.SATURDAY:
        return not is_saturday_open(specialization)

    return False


def earliest_bookable_start(
    now: datetime,
    specialization: Specialization | str | None,
    min_lead_days: int = DEFAULT_MIN_BOOKING_LEAD_DAYS,
    is_closed: ClosedDayPolicy = is_closed_day,
) -> datetime:
    """Start of the first open clinic day at least ``min_lead_days`` after ``now``.

    The search gives up after ``BOOKING_SEARCH_MAX_DAYS`` candidates and returns the
    start of the last day it looked at, even though that day is closed.
    """
    cursor = as_aware(now).astimezone(timezone.utc) + timedelta(days=min_lead_days)
    candidate_day = None

    for _ in range(config.BOOKING_SEARCH_MAX_DAYS):
        candidate_day, weekday = to_civil_date(cursor)
        if not is_closed(weekday, specialization):
            return start_of_day(candidate_day)
        cursor += timedelta(days=1)

    logger.warning(
        'No open booking day within %s days of %s for specialization %r; falling back to %s',
        config.BOOKING_SEARCH_MAX_DAYS,
        now.isoformat(),
        _specialization_name(specialization),
        candidate_day,
    )
    return start_of_day(candidate_day)


def earliest_bookable_date(
    now: datetime,
    specialization: Specialization | str | None,
    min_lead_days: int = DEFAULT_MIN_BOOKING_LEAD_DAYS,
    is_closed: ClosedDayPolicy = is_closed_day,
) -> date:
    start = earliest_bookable_start(now, specialization, min_lead_days, is_closed)
    return to_civil_date(start)[0]


def is_bookable_start(
    requested_start: datetime,
    now: datetime,
    specialization: Specialization | str | None,
    min_lead_days: int = DEFAULT_MIN_BOOKING_LEAD_DAYS,
    is_closed: ClosedDayPolicy = is_closed_day,
) -> bool:
    requested_start = as_aware(requested_start)
    if requested_start < earliest_bookable_start(now, specialization, min_lead_days, is_closed):
        return False

    _, weekday = to_civil_date(requested_start)
    return not is_closed(weekday, specialization)
