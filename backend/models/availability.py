"""Doctor availability (duty hour) model definitions."""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, String
from backend.database import Base


class DoctorAvailability(Base):
    """A bookable duty-hour window of a doctor.

    ``archived_at`` stays null while the window is active or expired but not yet
    swept; once set the row is only ever deleted.
    """
    __tablename__ = "doctor_availability"

    id = Column(Integer, primary_key=True)
    doctor_user_id = Column(Integer, ForeignKey("users.id"), index=True)
    clinic_id = Column(String, nullable=True)
    available_date = Column(DateTime(timezone=True))
    available_timestart = Column(DateTime(timezone=True))
    available_timeend = Column(DateTime(timezone=True))
    archived_at = Column(DateTime(timezone=True), nullable=True)
