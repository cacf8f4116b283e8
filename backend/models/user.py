"""User model definitions."""

import enum

from sqlalchemy import Column, Enum, Integer, String
from backend.database import Base


class Specialization(str, enum.Enum):
    """Practice type of a doctor account."""
    PHYSICIAN = "Physician"
    DENTIST = "Dentist"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    role = Column(String)  # patient/doctor/nurse
    specialization = Column(
        Enum(Specialization, name="doctor_specialization", values_callable=lambda members: [m.value for m in members]),
        nullable=True,
    )
