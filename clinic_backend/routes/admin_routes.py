import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import require_roles
from clinic_backend.core.errors import StoreUnavailableError
from clinic_backend.database import ensure_database_ready, get_db
from clinic_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, ROLES
from clinic_backend.routes.appointment_routes import AppointmentResponse
from clinic_backend.services import accounts, statistics
from clinic_backend.services import appointments as appointment_service

router = APIRouter(tags=['admin'], dependencies=[Depends(require_roles(ROLE_ADMIN))])
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class CreateUserRequest(BaseModel):
    username: str
    password: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None

    @field_validator('username')
    @classmethod
    def validate_username(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Username is required.')
        return normalized

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
        return value

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        return normalized or None


class CreateDoctorRequest(CreateUserRequest):
    specialization: str | None = None
    experience: int | None = None

    @field_validator('experience')
    @classmethod
    def validate_experience(cls, value: int | None) -> int | None:
        if value is not None and value < 0:
            raise ValueError('Experience cannot be negative.')
        return value


class CreateAnyUserRequest(CreateDoctorRequest):
    role: str

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ROLES:
            raise ValueError('Invalid role.')
        return normalized


class UserResponse(BaseModel):
    id: int
    username: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    role: str
    specialization: str | None = None
    experience: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class DoctorWithStatsResponse(UserResponse):
    appointmentsToday: int
    totalAppointments: int
    patientsToday: int
    totalPatients: int


class PatientDetailResponse(BaseModel):
    id: int
    username: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    totalAppointments: int
    completedAppointments: int
    pendingAppointments: int


class MonthCount(BaseModel):
    month: str
    count: int


class SpecializationCount(BaseModel):
    specialization: str
    count: int


class StatsResponse(BaseModel):
    totalPatients: int
    totalDoctors: int
    totalAppointments: int
    appointmentsToday: int
    appointmentsByMonth: list[MonthCount]
    doctorsBySpecialization: list[SpecializationCount]
    patientGrowth: list[MonthCount]


class DeletedResponse(BaseModel):
    message: str
    appointments_removed: int = 0


class PaymentRequest(BaseModel):
    paid: bool = True


def _store_unavailable(db: Session, exc: SQLAlchemyError) -> StoreUnavailableError:
    db.rollback()
    logger.exception('Admin store request failed')
    return StoreUnavailableError()


def _user_fields(user) -> dict:
    return UserResponse.model_validate(user).model_dump()


# Doctor management

@router.get('/doctors', response_model=list[DoctorWithStatsResponse])
def list_doctors(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return [
            DoctorWithStatsResponse(**_user_fields(doctor), **workload)
            for doctor, workload in statistics.doctor_directory(db)
        ]
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.post('/doctors', response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def add_doctor(data: CreateDoctorRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return accounts.create_user(db, role=ROLE_DOCTOR, **data.model_dump())
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.delete('/doctors/{doctor_id}', response_model=DeletedResponse)
def delete_doctor(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        removed = accounts.cascade_delete_owner(db, doctor_id, ROLE_DOCTOR)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc

    return DeletedResponse(message='Doctor deleted successfully', appointments_removed=removed)


# Patient management

@router.get('/patients', response_model=list[UserResponse])
def list_patients(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return accounts.list_users(db, ROLE_PATIENT)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.post('/patients', response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def add_patient(data: CreateUserRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return accounts.create_user(db, role=ROLE_PATIENT, **data.model_dump())
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.get('/patients/{patient_id}', response_model=PatientDetailResponse)
def get_patient_detail(patient_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        patient, counts = statistics.patient_detail(db, patient_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc

    return PatientDetailResponse(
        id=patient.id,
        username=patient.username,
        name=patient.name,
        email=patient.email,
        phone=patient.phone,
        **counts,
    )


@router.delete('/patients/{patient_id}', response_model=DeletedResponse)
def delete_patient(patient_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        removed = accounts.cascade_delete_owner(db, patient_id, ROLE_PATIENT)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc

    return DeletedResponse(message='Patient deleted successfully', appointments_removed=removed)


# Statistics

@router.get('/stats', response_model=StatsResponse)
def get_stats(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return statistics.global_stats(db)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


# Generic user management

@router.get('/users', response_model=list[UserResponse])
def list_all_users(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return accounts.list_users(db)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.post('/users', response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def add_user(data: CreateAnyUserRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return accounts.create_user(db, **data.model_dump())
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.delete('/users/{user_id}', response_model=DeletedResponse)
def remove_user(user_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        removed = accounts.delete_user(db, user_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc

    return DeletedResponse(message='User removed successfully', appointments_removed=removed)


# Appointments

@router.get('/all-appointments', response_model=list[AppointmentResponse])
def list_all_appointments(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return appointment_service.list_all(db)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc


@router.patch('/appointments/{appointment_id}/paid', response_model=AppointmentResponse)
def set_payment_status(appointment_id: int, data: PaymentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return appointment_service.mark_paid(db, appointment_id, data.paid)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db, exc) from exc
