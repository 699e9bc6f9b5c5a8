import os
from datetime import datetime
from itertools import count

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from clinic_backend import database  # noqa: E402
from clinic_backend.database import Base  # noqa: E402
from clinic_backend.models.appointment import Appointment  # noqa: E402
from clinic_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, User  # noqa: E402

# Not a real bcrypt hash; only for rows whose password is never checked.
PLACEHOLDER_HASH = 'not-a-real-hash'


@pytest.fixture(autouse=True)
def skip_schema_repair(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(database, '_appointment_schema_checked', True)


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=[User.__table__, Appointment.__table__])
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, User.__table__])
        engine.dispose()


@pytest.fixture
def db(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    sequence = count(1)

    def _make_user(role: str = ROLE_PATIENT, **fields) -> User:
        number = next(sequence)
        fields.setdefault('username', f'{role}{number}')
        fields.setdefault('email', f'{role}{number}@clinic.test')
        fields.setdefault('name', f'{role.title()} {number}')
        fields.setdefault('hashed_password', PLACEHOLDER_HASH)
        user = User(role=role, **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_appointment(db):
    def _make_appointment(patient: User, doctor: User, when, status: str = 'booked', **fields) -> Appointment:
        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            date=when,
            status=status,
            **fields,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment


@pytest.fixture
def admin(make_user) -> User:
    return make_user(ROLE_ADMIN, username='admin')


@pytest.fixture
def doctor(make_user) -> User:
    return make_user(ROLE_DOCTOR, specialization='Cardiology', experience=7)


@pytest.fixture
def patient(make_user) -> User:
    return make_user(ROLE_PATIENT, created_at=datetime(2024, 1, 2, 9, 0))


@pytest.fixture
def client(db_engine):
    from fastapi.testclient import TestClient

    from clinic_backend.database import get_db
    from clinic_backend.main import app

    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def override_get_db():
        session = testing_session_local()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from clinic_backend.auth import jwt_handler
    from clinic_backend.core.config import get_settings

    def _auth_headers(user: User) -> dict:
        token = jwt_handler.create_access_token(get_settings(), subject=str(user.id), role=user.role)
        return {'Authorization': f'Bearer {token}'}

    return _auth_headers
