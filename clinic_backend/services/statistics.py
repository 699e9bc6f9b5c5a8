"""Dashboard statistics, recomputed from the stores on every call."""

import calendar
import logging
from collections import Counter
from datetime import datetime

from sqlalchemy import distinct, func
from sqlalchemy.orm import Session

from clinic_backend.models.appointment import Appointment
from clinic_backend.models.user import ROLE_DOCTOR, ROLE_PATIENT, User
from clinic_backend.services.accounts import get_user
from clinic_backend.services.lifecycle import STATUS_BOOKED, STATUS_COMPLETED, WORKLOAD_STATUSES, parse_timestamp

logger = logging.getLogger(__name__)

MONTHS_IN_WINDOW = 12
NO_SPECIALIZATION = 'No Specialization'


def midnight(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def shift_months(moment: datetime, months: int) -> datetime:
    """Move ``moment`` by whole calendar months, clamping the day to the target month."""
    month_index = moment.year * 12 + (moment.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def month_key(moment: datetime) -> str:
    return moment.strftime('%Y-%m')


def last_12_months(now: datetime) -> list[str]:
    """Month keys for the 12 calendar months ending with the month of ``now``, oldest first."""
    first_of_month = now.replace(day=1)
    return [month_key(shift_months(first_of_month, -offset)) for offset in range(MONTHS_IN_WINDOW - 1, -1, -1)]


def bucket_by_month(timestamps, months: list[str]) -> list[dict]:
    counts: Counter = Counter()
    skipped = 0
    for value in timestamps:
        parsed = parse_timestamp(value)
        if parsed is None:
            skipped += 1
            continue
        counts[month_key(parsed)] += 1

    if skipped:
        logger.debug('Skipped %d unreadable timestamps while bucketing by month', skipped)

    return [{'month': month, 'count': counts.get(month, 0)} for month in months]


def doctors_by_specialization(specializations) -> list[dict]:
    counts: dict[str, int] = {}
    for specialization in specializations:
        key = specialization or NO_SPECIALIZATION
        counts[key] = counts.get(key, 0) + 1
    return [{'specialization': key, 'count': count} for key, count in counts.items()]


def global_stats(db: Session, now: datetime | None = None) -> dict:
    now = now or datetime.now()
    today = midnight(now)
    window_start = shift_months(now, -MONTHS_IN_WINDOW)
    months = last_12_months(now)

    total_patients = db.query(User).filter(User.role == ROLE_PATIENT).count()
    total_doctors = db.query(User).filter(User.role == ROLE_DOCTOR).count()
    total_appointments = db.query(Appointment).count()
    appointments_today = db.query(Appointment).filter(Appointment.date >= today).count()

    appointment_dates = db.query(Appointment.date).filter(Appointment.date >= window_start).all()
    specializations = db.query(User.specialization).filter(User.role == ROLE_DOCTOR).all()
    patient_signups = db.query(User.created_at).filter(
        User.role == ROLE_PATIENT,
        User.created_at >= window_start,
    ).all()

    return {
        'totalPatients': total_patients,
        'totalDoctors': total_doctors,
        'totalAppointments': total_appointments,
        'appointmentsToday': appointments_today,
        'appointmentsByMonth': bucket_by_month((row[0] for row in appointment_dates), months),
        'doctorsBySpecialization': doctors_by_specialization(row[0] for row in specializations),
        'patientGrowth': bucket_by_month((row[0] for row in patient_signups), months),
    }


def _doctor_workload(db: Session, doctor_id: int, today: datetime) -> dict:
    workload = (
        Appointment.doctor_id == doctor_id,
        Appointment.status.in_(WORKLOAD_STATUSES),
    )
    todays = workload + (Appointment.date >= today,)

    appointments_today, patients_today = db.query(
        func.count(Appointment.id),
        func.count(distinct(Appointment.patient_id)),
    ).filter(*todays).one()
    total_appointments, total_patients = db.query(
        func.count(Appointment.id),
        func.count(distinct(Appointment.patient_id)),
    ).filter(*workload).one()

    return {
        'appointmentsToday': appointments_today,
        'totalAppointments': total_appointments,
        'patientsToday': patients_today,
        'totalPatients': total_patients,
    }


def per_doctor_stats(db: Session, doctor_id: int, now: datetime | None = None) -> dict:
    """Workload figures for one doctor; only booked and completed visits count."""
    now = now or datetime.now()
    get_user(db, doctor_id, ROLE_DOCTOR)
    return _doctor_workload(db, doctor_id, midnight(now))


def doctor_directory(db: Session, now: datetime | None = None) -> list[tuple[User, dict]]:
    today = midnight(now or datetime.now())
    doctors = db.query(User).filter(User.role == ROLE_DOCTOR).order_by(User.id.asc()).all()
    return [(doctor, _doctor_workload(db, doctor.id, today)) for doctor in doctors]


def patient_detail(db: Session, patient_id: int) -> tuple[User, dict]:
    """Appointment counts for one patient.

    ``pendingAppointments`` counts *booked* appointments. Dashboards read it
    that way, so it is kept as is.
    """
    patient = get_user(db, patient_id, ROLE_PATIENT)

    query = db.query(Appointment).filter(Appointment.patient_id == patient_id)
    counts = {
        'totalAppointments': query.count(),
        'completedAppointments': query.filter(Appointment.status == STATUS_COMPLETED).count(),
        'pendingAppointments': query.filter(Appointment.status == STATUS_BOOKED).count(),
    }
    logger.debug('Appointment counts for patient %s: %s', patient_id, counts)
    return patient, counts
