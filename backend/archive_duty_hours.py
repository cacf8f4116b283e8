"""Archive expired doctor duty hours and purge old archived ones.

Usage:
    python -m backend.archive_duty_hours [--clinic-id ID] [--doctor-id ID]
"""
import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from backend.database import SessionLocal
from backend.services.duty_hours import archive_expired_duty_hours, build_sweep_criteria

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Archive expired duty hours.")
    parser.add_argument("--clinic-id", default=None)
    parser.add_argument("--doctor-id", type=int, default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    db = SessionLocal()
    try:
        sweep = archive_expired_duty_hours(db, *build_sweep_criteria(args.clinic_id, args.doctor_id))
    except SQLAlchemyError:
        logger.exception("Duty-hour sweep failed.")
        return 1
    finally:
        db.close()

    print(f"archived={sweep.archived} deleted={sweep.deleted}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
