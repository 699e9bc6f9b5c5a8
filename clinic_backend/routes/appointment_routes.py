import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import ensure_self_or_admin, get_current_user, require_roles
from clinic_backend.core.errors import StoreUnavailableError, ValidationFailure
from clinic_backend.database import ensure_database_ready, get_db
from clinic_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, User
from clinic_backend.services import appointments as appointment_service
from clinic_backend.services import statistics
from clinic_backend.services.lifecycle import STATUS_PENDING, count_by_classification

router = APIRouter(tags=['appointments'])
logger = logging.getLogger(__name__)

MAX_FEEDBACK_COMMENT_LENGTH = 1000


class ParticipantResponse(BaseModel):
    id: int
    name: str | None = None
    email: str | None = None
    specialization: str | None = None

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    date: datetime | None = None
    status: str
    feedback: dict[str, Any] | None = None
    paid: bool = False
    created_at: datetime
    updated_at: datetime
    patient: ParticipantResponse | None = None
    doctor: ParticipantResponse | None = None

    class Config:
        from_attributes = True


class BookAppointmentRequest(BaseModel):
    doctor_id: int
    date: datetime
    status: str = STATUS_PENDING
    patient_id: int | None = None

    @field_validator('status')
    @classmethod
    def normalize_status(cls, value: str) -> str:
        return value.strip().lower()


class StatusChangeRequest(BaseModel):
    status: str


class FeedbackRequest(BaseModel):
    """Free-form feedback; ``rating`` and ``comment`` are checked when present."""

    rating: int | None = None
    comment: str | None = None

    class Config:
        extra = 'allow'

    @field_validator('rating')
    @classmethod
    def validate_rating(cls, value: int | None) -> int | None:
        if value is not None and not 1 <= value <= 5:
            raise ValueError('Rating must be between 1 and 5.')
        return value

    @field_validator('comment')
    @classmethod
    def validate_comment(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_FEEDBACK_COMMENT_LENGTH:
            raise ValueError(f'Comments must be {MAX_FEEDBACK_COMMENT_LENGTH} characters or fewer.')

        return normalized


class AppointmentSummaryResponse(BaseModel):
    totalAppointments: int
    upcomingAppointments: int
    completedAppointments: int
    pendingBills: int


class DoctorStatsResponse(BaseModel):
    appointmentsToday: int
    totalAppointments: int
    patientsToday: int
    totalPatients: int


def _store_unavailable(db: Session, exc: SQLAlchemyError) -> StoreUnavailableError:
    db.rollback()
    logger.exception('Appointment store request failed')
    return StoreUnavailableError()


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: BookAppointmentRequest,
    current_user: User = Depends(require_roles(ROLE_PATIENT, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    if current_user.role == ROLE_PATIENT:
        patient_id = current_user.id
    elif data.patient_id is None:
        raise ValidationFailure('patient_id is required when booking on behalf of a patient.')
    else:
        patient_id = data.patient_id

    ensure_database_ready()

    try:
        return appointment_service.book_appointment(db, patient_id, data.doctor_id, data.date, data.status)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.get('/patient/{patient_id}', response_model=list[AppointmentResponse])
def list_patient_appointments(
    patient_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(current_user, patient_id)
    ensure_database_ready()

    try:
        return appointment_service.list_for_patient(db, patient_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.get('/patient/{patient_id}/summary', response_model=AppointmentSummaryResponse)
def patient_summary(
    patient_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(current_user, patient_id)
    ensure_database_ready()

    try:
        rows = appointment_service.list_for_patient(db, patient_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc

    return count_by_classification(rows, datetime.now()).as_dict()


@router.get('/doctor/{doctor_id}', response_model=list[AppointmentResponse])
def list_doctor_appointments(
    doctor_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(current_user, doctor_id)
    ensure_database_ready()

    try:
        return appointment_service.list_for_doctor(db, doctor_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.get('/doctor/{doctor_id}/stats', response_model=DoctorStatsResponse)
def doctor_stats(
    doctor_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(current_user, doctor_id)
    ensure_database_ready()

    try:
        return statistics.per_doctor_stats(db, doctor_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def change_appointment_status(
    appointment_id: int,
    data: StatusChangeRequest,
    current_user: User = Depends(require_roles(ROLE_DOCTOR, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = appointment_service.get_appointment(db, appointment_id)
        if current_user.role == ROLE_DOCTOR and appointment.doctor_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the assigned doctor can change this appointment.',
            )
        return appointment_service.change_status(db, appointment_id, data.status)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.post('/{appointment_id}/feedback', response_model=AppointmentResponse)
def leave_feedback(
    appointment_id: int,
    data: FeedbackRequest,
    current_user: User = Depends(require_roles(ROLE_PATIENT)),
    db: Session = Depends(get_db),
):
    feedback = data.model_dump(exclude_none=True)
    if not feedback:
        raise ValidationFailure('Feedback must not be empty.')

    ensure_database_ready()

    try:
        return appointment_service.submit_feedback(db, appointment_id, current_user.id, feedback)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc
