"""Appointment status lifecycle and the dashboard buckets derived from it.

Everything here works on any object exposing ``date``, ``status`` and
``paid`` attributes, so ORM rows and plain records classify the same way.

Status changes are deliberately unrestricted: any status may be set to any
other. A stricter transition policy, if one is ever needed, belongs in its own
layer on top of :func:`transition_status`.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time

from clinic_backend.core.errors import ValidationFailure

logger = logging.getLogger(__name__)

STATUS_PENDING = 'pending'
STATUS_BOOKED = 'booked'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'
STATUSES = (STATUS_PENDING, STATUS_BOOKED, STATUS_COMPLETED, STATUS_CANCELLED)

# Statuses that still lead to a visit.
OPEN_STATUSES = frozenset({STATUS_BOOKED, STATUS_PENDING})
# Statuses that count toward a doctor's workload.
WORKLOAD_STATUSES = (STATUS_BOOKED, STATUS_COMPLETED)

UPCOMING = 'upcoming'
COMPLETED = 'completed'
PENDING_BILLING = 'pendingBilling'
OTHER = 'other'


def _to_naive_local(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_timestamp(value) -> datetime | None:
    """Read ``value`` as a naive local datetime, or return None.

    Never raises: unparsable input is a per-record data problem, not an error.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _to_naive_local(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            return _to_naive_local(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def classify(appointment, now: datetime) -> str:
    status = appointment.status
    if status == STATUS_COMPLETED:
        return COMPLETED if appointment.paid else PENDING_BILLING

    scheduled = parse_timestamp(appointment.date)
    if scheduled is None:
        logger.debug('Appointment %s has no readable date; not upcoming', getattr(appointment, 'id', None))
        return OTHER
    if scheduled > _to_naive_local(now) and status in OPEN_STATUSES:
        return UPCOMING
    return OTHER


@dataclass(frozen=True)
class ClassificationCounts:
    total: int = 0
    upcoming: int = 0
    completed: int = 0
    pending_billing: int = 0

    def as_dict(self) -> dict:
        return {
            'totalAppointments': self.total,
            'upcomingAppointments': self.upcoming,
            'completedAppointments': self.completed,
            'pendingBills': self.pending_billing,
        }


def count_by_classification(appointments, now: datetime) -> ClassificationCounts:
    total = upcoming = completed = pending_billing = 0
    for appointment in appointments:
        total += 1
        label = classify(appointment, now)
        if label == UPCOMING:
            upcoming += 1
        elif label == PENDING_BILLING:
            completed += 1
            pending_billing += 1
        elif label == COMPLETED:
            completed += 1

    return ClassificationCounts(
        total=total,
        upcoming=upcoming,
        completed=completed,
        pending_billing=pending_billing,
    )


def validate_status(value: str) -> str:
    normalized = (value or '').strip().lower()
    if normalized not in STATUSES:
        raise ValidationFailure(
            'Invalid status.',
            details=[f'status must be one of: {", ".join(STATUSES)}'],
        )
    return normalized


def transition_status(appointment, new_status: str) -> str:
    """Set ``appointment.status`` and return the status it replaced."""
    normalized = validate_status(new_status)
    previous = appointment.status
    appointment.status = normalized
    return previous
