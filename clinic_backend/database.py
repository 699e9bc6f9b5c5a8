from datetime import datetime
from threading import Lock

from sqlalchemy import DateTime, bindparam, create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_backend.core.config import Settings, get_settings
from clinic_backend.core.errors import StoreUnavailableError


def build_engine(settings: Settings) -> Engine:
    connect_args = {}
    if settings.database_url.startswith('sqlite'):
        connect_args['check_same_thread'] = False
    return create_engine(settings.database_url, echo=settings.sql_echo, connect_args=connect_args)


engine = build_engine(get_settings())

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def ensure_appointment_schema(bind: Engine | None = None) -> None:
    """Bring an older appointments table up to the current column set.

    Tables created before payment tracking lack ``paid``; tables created by
    the first release also lack ``feedback`` and the row timestamps. Added
    timestamps are backfilled so the rows satisfy the model's NOT NULL columns.
    """
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(bind)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('feedback', 'ALTER TABLE appointments ADD COLUMN feedback JSON'),
            ('paid', 'ALTER TABLE appointments ADD COLUMN paid BOOLEAN NOT NULL DEFAULT FALSE'),
            ('created_at', 'ALTER TABLE appointments ADD COLUMN created_at DATETIME'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at DATETIME'),
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            for column_name in ('created_at', 'updated_at'):
                if column_name not in existing_columns:
                    backfill = text(
                        f'UPDATE appointments SET {column_name} = :now WHERE {column_name} IS NULL'
                    ).bindparams(bindparam('now', type_=DateTime()))
                    connection.execute(backfill, {'now': datetime.now()})
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_patient_date ON appointments(patient_id, date)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date ON appointments(doctor_id, date)')
            )

        _appointment_schema_checked = True


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise StoreUnavailableError() from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
