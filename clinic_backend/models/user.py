"""User model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from clinic_backend.database import Base


ROLE_ADMIN = "admin"
ROLE_DOCTOR = "doctor"
ROLE_PATIENT = "patient"
ROLES = (ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT)


class User(Base):
    """Represents an application user: admin, doctor or patient."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True)
    hashed_password = Column(String, nullable=False)
    name = Column(String)
    phone = Column(String)
    role = Column(String, nullable=False, index=True)  # admin/doctor/patient
    specialization = Column(String)  # doctors only
    experience = Column(Integer)  # years, doctors only
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)
