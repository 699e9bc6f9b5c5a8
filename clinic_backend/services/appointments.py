"""Booking and the explicit mutations of an appointment."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session, joinedload

from clinic_backend.core.errors import NotFoundError, ValidationFailure
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.user import ROLE_DOCTOR, ROLE_PATIENT
from clinic_backend.services.accounts import get_user
from clinic_backend.services.lifecycle import (
    OPEN_STATUSES,
    STATUS_COMPLETED,
    STATUS_PENDING,
    transition_status,
    validate_status,
)

logger = logging.getLogger(__name__)


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise NotFoundError('Appointment not found')
    return appointment


def book_appointment(
    db: Session,
    patient_id: int,
    doctor_id: int,
    scheduled_for: datetime,
    status: str = STATUS_PENDING,
) -> Appointment:
    if patient_id == doctor_id:
        raise ValidationFailure('A user cannot book an appointment with themselves.')

    initial_status = validate_status(status)
    if initial_status not in OPEN_STATUSES:
        raise ValidationFailure('New appointments must be pending or booked.')

    get_user(db, patient_id, ROLE_PATIENT)
    get_user(db, doctor_id, ROLE_DOCTOR)

    appointment = Appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        date=scheduled_for,
        status=initial_status,
    )
    if appointment.date is None:
        raise ValidationFailure('Invalid appointment date.')

    db.add(appointment)
    db.commit()
    db.refresh(appointment)

    logger.info('Booked appointment %s for patient %s with doctor %s', appointment.id, patient_id, doctor_id)
    return appointment


def list_for_patient(db: Session, patient_id: int) -> list[Appointment]:
    return (
        db.query(Appointment)
        .options(joinedload(Appointment.doctor))
        .filter(Appointment.patient_id == patient_id)
        .order_by(Appointment.date.desc())
        .all()
    )


def list_for_doctor(db: Session, doctor_id: int) -> list[Appointment]:
    return (
        db.query(Appointment)
        .options(joinedload(Appointment.patient))
        .filter(Appointment.doctor_id == doctor_id)
        .order_by(Appointment.date.desc())
        .all()
    )


def list_all(db: Session) -> list[Appointment]:
    return (
        db.query(Appointment)
        .options(joinedload(Appointment.patient), joinedload(Appointment.doctor))
        .order_by(Appointment.date.desc())
        .all()
    )


def change_status(db: Session, appointment_id: int, new_status: str) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    previous = transition_status(appointment, new_status)
    db.commit()
    db.refresh(appointment)

    logger.info('Appointment %s status %s -> %s', appointment_id, previous, appointment.status)
    return appointment


def submit_feedback(db: Session, appointment_id: int, patient_id: int, feedback: dict) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    if appointment.patient_id != patient_id:
        raise NotFoundError('Appointment not found')
    if appointment.status != STATUS_COMPLETED:
        raise ValidationFailure('Feedback can only be left for completed appointments.')

    appointment.feedback = feedback
    db.commit()
    db.refresh(appointment)
    return appointment


def mark_paid(db: Session, appointment_id: int, paid: bool = True) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    if appointment.status != STATUS_COMPLETED:
        raise ValidationFailure('Only completed appointments can be billed.')

    appointment.paid = paid
    db.commit()
    db.refresh(appointment)
    return appointment
