from collections import defaultdict
from datetime import datetime, timedelta
from typing import NamedTuple

from backend.core.clinic_time import as_aware, clinic_zone, ranges_overlap

SLOT_MINUTES = 15


class TimeSlot(NamedTuple):
    start: str
    end: str


def _format_hhmm(instant: datetime) -> str:
    return as_aware(instant).astimezone(clinic_zone()).strftime('%H:%M')


def compute_slots_for_doctor(doctor_availabilities, doctor_appointments) -> list[TimeSlot]:
    """Split duty-hour windows into 15-minute slots not covered by an appointment.

    Slots are labelled with clinic-local ``HH:MM`` times. A trailing piece shorter
    than a full slot is dropped.
    """
    booked = [
        (as_aware(appointment.appointment_timestart), as_aware(appointment.appointment_timeend))
        for appointment in doctor_appointments
    ]
    slots: list[TimeSlot] = []
    step = timedelta(minutes=SLOT_MINUTES)

    for availability in doctor_availabilities:
        window_end = as_aware(availability.available_timeend)
        cursor = as_aware(availability.available_timestart)

        while cursor + step <= window_end:
            slot_end = cursor + step
            if not any(ranges_overlap(cursor, slot_end, start, end) for start, end in booked):
                slots.append(TimeSlot(start=_format_hhmm(cursor), end=_format_hhmm(slot_end)))
            cursor = slot_end

    return slots


def compute_slots_for_doctors(availabilities, appointments) -> dict[int, list[TimeSlot]]:
    availabilities_by_doctor = defaultdict(list)
    appointments_by_doctor = defaultdict(list)

    for availability in availabilities:
        availabilities_by_doctor[availability.doctor_user_id].append(availability)
    for appointment in appointments:
        appointments_by_doctor[appointment.doctor_user_id].append(appointment)

    return {
        doctor_id: compute_slots_for_doctor(doctor_availabilities, appointments_by_doctor[doctor_id])
        for doctor_id, doctor_availabilities in availabilities_by_doctor.items()
    }
