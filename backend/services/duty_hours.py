"""Archive-then-purge lifecycle for doctor duty hours.

A window is archived once its end time is more than ``ARCHIVE_GRACE_HOURS`` in
the past, and deleted once it has been archived for ``DELETION_RETENTION_HOURS``.
Both steps are single conditional statements committed separately; running the
sweep again with nothing newly expired changes nothing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import partial

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.clinic_time import utc_now
from backend.core.db_retry import EngineConnection, run_with_reconnect
from backend.models.availability import DoctorAvailability

logger = logging.getLogger(__name__)

ARCHIVE_GRACE_PERIOD = timedelta(hours=config.ARCHIVE_GRACE_HOURS)
DELETION_RETENTION_PERIOD = timedelta(hours=config.DELETION_RETENTION_HOURS)


@dataclass(frozen=True)
class DutyHourSweep:
    archived: int
    deleted: int


def build_sweep_criteria(clinic_id: str | None = None, doctor_user_id: int | None = None) -> list:
    criteria = []
    if clinic_id:
        criteria.append(DoctorAvailability.clinic_id == clinic_id)
    if doctor_user_id is not None:
        criteria.append(DoctorAvailability.doctor_user_id == doctor_user_id)
    return criteria


def _archive(db: Session, now: datetime, criteria: tuple) -> int:
    cutoff = now - ARCHIVE_GRACE_PERIOD
    try:
        archived = db.query(DoctorAvailability).filter(
            *criteria,
            DoctorAvailability.archived_at.is_(None),
            DoctorAvailability.available_timeend < cutoff,
        ).update({DoctorAvailability.archived_at: now}, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return archived


def _purge(db: Session, now: datetime, criteria: tuple) -> int:
    deletion_cutoff = now - DELETION_RETENTION_PERIOD
    try:
        deleted = db.query(DoctorAvailability).filter(
            *criteria,
            DoctorAvailability.archived_at.is_not(None),
            DoctorAvailability.archived_at <= deletion_cutoff,
        ).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return deleted


def archive_expired_duty_hours(
    db: Session,
    *criteria,
    now: datetime | None = None,
    executor=None,
) -> DutyHourSweep:
    """Archive expired duty hours and purge the ones archived past retention.

    ``criteria`` are extra SQLAlchemy filter expressions (clinic, doctor, ...).
    They narrow the sweep and are always combined with the time-based
    conditions, so they can never widen it.
    Each statement goes through ``executor``, by default a reconnect-once
    retry bound to the session's engine.
    """
    now = now or utc_now()
    if executor is None:
        executor = partial(run_with_reconnect, connection=EngineConnection(db.get_bind()))

    archived = executor(lambda: _archive(db, now, criteria))
    deleted = executor(lambda: _purge(db, now, criteria))

    if archived or deleted:
        logger.info('Duty-hour sweep at %s archived %s and deleted %s windows', now.isoformat(), archived, deleted)

    return DutyHourSweep(archived=archived, deleted=deleted)
