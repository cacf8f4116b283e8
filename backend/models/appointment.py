"""Appointment model definitions."""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, String
from backend.database import Base

ACTIVE_APPOINTMENT_STATUSES = ("Pending", "Approved")


class Appointment(Base):
    """Represents a patient appointment with a doctor."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    doctor_user_id = Column(Integer, ForeignKey("users.id"), index=True)
    patient_email = Column(String)
    appointment_timestart = Column(DateTime(timezone=True))
    appointment_timeend = Column(DateTime(timezone=True))
    status = Column(String, default="Pending")
