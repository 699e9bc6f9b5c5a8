"""User accounts: creation, lookup, login checks and owner deletion."""

import logging

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.passwords import hash_password, verify_password
from clinic_backend.core.errors import ConflictError, NotFoundError, ValidationFailure
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, ROLES, User

logger = logging.getLogger(__name__)

ROLE_LABELS = {
    ROLE_ADMIN: 'Admin',
    ROLE_DOCTOR: 'Doctor',
    ROLE_PATIENT: 'Patient',
}


def create_user(
    db: Session,
    *,
    username: str,
    password: str,
    role: str,
    name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    specialization: str | None = None,
    experience: int | None = None,
) -> User:
    if role not in ROLES:
        raise ValidationFailure('Invalid role.', details=[f'role must be one of: {", ".join(ROLES)}'])

    existing = db.query(User).filter(
        or_(User.username == username, User.email == email) if email else User.username == username
    ).first()
    if existing is not None:
        raise ConflictError('Username already exists' if existing.username == username else 'Email already exists')

    user = User(
        username=username,
        hashed_password=hash_password(password),
        role=role,
        name=name,
        email=email,
        phone=phone,
        specialization=specialization if role == ROLE_DOCTOR else None,
        experience=experience if role == ROLE_DOCTOR else None,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError('Username or email already exists') from exc
    db.refresh(user)

    logger.info('Created %s account %s', role, user.id)
    return user


def list_users(db: Session, role: str | None = None) -> list[User]:
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    return query.order_by(User.id.asc()).all()


def get_user(db: Session, user_id: int, role: str | None = None) -> User:
    query = db.query(User).filter(User.id == user_id)
    if role is not None:
        query = query.filter(User.role == role)
    user = query.first()
    if user is None:
        raise NotFoundError(f'{ROLE_LABELS.get(role, "User")} not found')
    return user


def authenticate(db: Session, username: str, password: str, role: str) -> User:
    user = db.query(User).filter(User.username == username, User.role == role).first()
    if user is None:
        raise NotFoundError('User not found or role mismatch')
    if not verify_password(password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Incorrect password')
    return user


def cascade_delete_owner(db: Session, owner_id: int, role: str) -> int:
    """Delete a patient or doctor together with every appointment they take part in.

    Appointments go first, then the user, inside one transaction so no
    appointment is left pointing at a deleted user. Returns the number of
    appointments removed.
    """
    if role == ROLE_PATIENT:
        owner_column = Appointment.patient_id
    elif role == ROLE_DOCTOR:
        owner_column = Appointment.doctor_id
    else:
        raise ValidationFailure('Only patients and doctors own appointments.')

    owner = get_user(db, owner_id, role)

    try:
        removed = db.query(Appointment).filter(owner_column == owner_id).delete(synchronize_session=False)
        db.delete(owner)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info('Deleted %s %s and %d appointments', role, owner_id, removed)
    return removed


def delete_user(db: Session, user_id: int) -> int:
    user = get_user(db, user_id)
    if user.role in (ROLE_PATIENT, ROLE_DOCTOR):
        return cascade_delete_owner(db, user.id, user.role)

    try:
        db.delete(user)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info('Deleted %s %s', user.role, user_id)
    return 0
