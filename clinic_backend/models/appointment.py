"""Appointment model definitions."""

import logging
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship, validates

from clinic_backend.database import Base
from clinic_backend.models.user import User
from clinic_backend.services.lifecycle import STATUS_PENDING, parse_timestamp

logger = logging.getLogger(__name__)


class Appointment(Base):
    """Represents a scheduled encounter between a patient and a doctor.

    ``date`` is coerced on assignment: a value that cannot be read as a point
    in time is stored as NULL and the row is left out of date-based views.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_patient_date", "patient_id", "date"),
        Index("idx_appointments_doctor_date", "doctor_id", "date"),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(DateTime)
    status = Column(String, nullable=False, default=STATUS_PENDING)
    feedback = Column(JSON)
    paid = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    patient = relationship(User, foreign_keys=[patient_id])
    doctor = relationship(User, foreign_keys=[doctor_id])

    @validates("date")
    def _coerce_date(self, key, value):
        parsed = parse_timestamp(value)
        if value is not None and parsed is None:
            logger.debug("Storing appointment without a date; could not parse %r", value)
        return parsed
