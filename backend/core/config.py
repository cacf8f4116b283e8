import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: tuple[str, ...] = ()) -> tuple[str, ...]:
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())

SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), default=("http://localhost:3000",))

CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "Asia/Manila")

MIN_BOOKING_LEAD_DAYS = int(os.getenv("MIN_BOOKING_LEAD_DAYS", "3"))
BOOKING_SEARCH_MAX_DAYS = 31
SATURDAY_OPEN_SPECIALIZATIONS = _get_list(
    os.getenv("SATURDAY_OPEN_SPECIALIZATIONS"),
    default=("Dentist",),
)

ARCHIVE_GRACE_HOURS = int(os.getenv("ARCHIVE_GRACE_HOURS", "24"))
DELETION_RETENTION_HOURS = int(os.getenv("DELETION_RETENTION_HOURS", "24"))

def validate_runtime_config() -> None:
    if MIN_BOOKING_LEAD_DAYS < 0:
        raise RuntimeError("MIN_BOOKING_LEAD_DAYS must not be negative.")
    if ARCHIVE_GRACE_HOURS <= 0 or DELETION_RETENTION_HOURS <= 0:
        raise RuntimeError("ARCHIVE_GRACE_HOURS and DELETION_RETENTION_HOURS must be positive.")
    try:
        ZoneInfo(CLINIC_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"CLINIC_TIMEZONE {CLINIC_TIMEZONE!r} is not a known time zone.") from exc
