from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.clinic_time import clinic_zone, end_of_day, start_of_day, to_civil_date, utc_now
from backend.database import SessionLocal, ensure_duty_hour_schema
from backend.models.appointment import ACTIVE_APPOINTMENT_STATUSES, Appointment
from backend.models.availability import DoctorAvailability
from backend.models.user import User
from backend.services.booking_window import earliest_bookable_start, is_bookable_start
from backend.services.duty_hours import archive_expired_duty_hours, build_sweep_criteria
from backend.services.slots import compute_slots_for_doctors

router = APIRouter(tags=['availability'])

DOCTOR_ROLE = 'doctor'
MAX_BULK_DOCTORS = 50


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=clinic_zone())
    return value.astimezone(timezone.utc)


class EarliestBookingResponse(BaseModel):
    doctor_user_id: int
    specialization: str | None = None
    min_lead_days: int
    earliest_date: date
    earliest_start: datetime


class TimeSlotResponse(BaseModel):
    start: str
    end: str


class DoctorSlotsResponse(BaseModel):
    date: date
    availability: dict[int, list[TimeSlotResponse]]


class CreateAppointmentRequest(BaseModel):
    doctor_user_id: int
    patient_email: str
    appointment_timestart: datetime
    appointment_timeend: datetime

    @field_validator('patient_email')
    @classmethod
    def validate_patient_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Patient email is required.')
        return normalized

    @field_validator('appointment_timestart', 'appointment_timeend')
    @classmethod
    def normalize_instant(cls, value: datetime) -> datetime:
        # Naive times are clinic wall-clock times.
        return _to_utc(value)


class AppointmentResponse(BaseModel):
    id: int
    doctor_user_id: int
    patient_email: str
    appointment_timestart: datetime
    appointment_timeend: datetime
    status: str

    model_config = ConfigDict(from_attributes=True)


class DutyHourSweepResponse(BaseModel):
    archived: int
    deleted: int


def ensure_database_ready() -> None:
    try:
        ensure_duty_hour_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_doctor(doctor_user_id: int, db: Session) -> User:
    doctor = db.query(User).filter(User.id == doctor_user_id, User.role == DOCTOR_ROLE).first()
    if doctor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Doctor not found.',
        )
    return doctor


def parse_doctor_ids(raw: str) -> list[int]:
    doctor_ids: list[int] = []
    for value in raw.split(','):
        value = value.strip()
        if not value:
            continue
        try:
            doctor_id = int(value)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'Invalid doctor id: {value!r}.',
            ) from exc
        if doctor_id not in doctor_ids:
            doctor_ids.append(doctor_id)

    if not doctor_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='No doctors provided.',
        )
    if len(doctor_ids) > MAX_BULK_DOCTORS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'At most {MAX_BULK_DOCTORS} doctors can be requested at once.',
        )
    return doctor_ids


@router.get('/doctors/{doctor_user_id}/earliest', response_model=EarliestBookingResponse)
def get_earliest_booking(
    doctor_user_id: int,
    min_lead_days: int = Query(default=config.MIN_BOOKING_LEAD_DAYS, ge=0, le=365),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        doctor = get_doctor(doctor_user_id, db)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc

    earliest_start = earliest_bookable_start(utc_now(), doctor.specialization, min_lead_days)

    return EarliestBookingResponse(
        doctor_user_id=doctor.id,
        specialization=doctor.specialization.value if doctor.specialization else None,
        min_lead_days=min_lead_days,
        earliest_date=to_civil_date(earliest_start)[0],
        earliest_start=earliest_start,
    )


@router.get('/doctors/slots', response_model=DoctorSlotsResponse)
def list_doctor_slots(
    doctor_user_ids: str = Query(...),
    day: date = Query(..., alias='date'),
    clinic_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    doctor_ids = parse_doctor_ids(doctor_user_ids)

    ensure_database_ready()

    day_start = start_of_day(day).astimezone(timezone.utc)
    day_end = end_of_day(day).astimezone(timezone.utc)

    criteria = [
        DoctorAvailability.doctor_user_id.in_(doctor_ids),
        DoctorAvailability.archived_at.is_(None),
        DoctorAvailability.available_timestart >= day_start,
        DoctorAvailability.available_timestart <= day_end,
    ]
    if clinic_id:
        criteria.append(DoctorAvailability.clinic_id == clinic_id)

    try:
        availabilities = db.query(DoctorAvailability).filter(*criteria).order_by(
            DoctorAvailability.available_timestart.asc()
        ).all()
        appointments = db.query(Appointment).filter(
            Appointment.doctor_user_id.in_(doctor_ids),
            Appointment.appointment_timestart >= day_start,
            Appointment.appointment_timestart <= day_end,
            Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
        ).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc

    slots_by_doctor = compute_slots_for_doctors(availabilities, appointments)

    return DoctorSlotsResponse(
        date=day,
        availability={
            doctor_id: [TimeSlotResponse(start=slot.start, end=slot.end) for slot in slots_by_doctor.get(doctor_id, [])]
            for doctor_id in doctor_ids
        },
    )


@router.post('/appointments', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    start_time = data.appointment_timestart
    end_time = data.appointment_timeend

    if end_time <= start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointment end time must be after its start time.',
        )

    ensure_database_ready()

    try:
        doctor = get_doctor(data.doctor_user_id, db)
        now = utc_now()

        if not is_bookable_start(start_time, now, doctor.specialization):
            earliest_start = earliest_bookable_start(now, doctor.specialization)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    'This doctor can only be booked on open clinic days from '
                    f'{to_civil_date(earliest_start)[0].isoformat()} onwards.'
                ),
            )

        covering_window = db.query(DoctorAvailability).filter(
            DoctorAvailability.doctor_user_id == doctor.id,
            DoctorAvailability.archived_at.is_(None),
            DoctorAvailability.available_timestart <= start_time,
            DoctorAvailability.available_timeend >= end_time,
        ).first()
        if not covering_window:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="This time is outside the doctor's duty hours.",
            )

        existing_appointment = db.query(Appointment).filter(
            Appointment.doctor_user_id == doctor.id,
            Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
            Appointment.appointment_timestart < end_time,
            Appointment.appointment_timeend > start_time,
        ).first()
        if existing_appointment:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This time is already booked.',
            )

        appointment = Appointment(
            doctor_user_id=doctor.id,
            patient_email=data.patient_email,
            appointment_timestart=start_time,
            appointment_timeend=end_time,
            status='Pending',
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        return appointment
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


@router.post('/duty-hours/archive', response_model=DutyHourSweepResponse)
def archive_duty_hours(
    clinic_id: str | None = Query(default=None),
    doctor_user_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    criteria = build_sweep_criteria(clinic_id, doctor_user_id)

    try:
        sweep = archive_expired_duty_hours(db, *criteria, now=utc_now())
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc

    return DutyHourSweepResponse(archived=sweep.archived, deleted=sweep.deleted)
