from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from clinic_backend.core.errors import STORE_UNAVAILABLE_DETAIL
from clinic_backend.models.user import ROLE_DOCTOR, ROLE_PATIENT
from clinic_backend.routes.appointment_routes import FeedbackRequest, patient_summary
from clinic_backend.services import appointments as appointment_service


def test_feedback_request_normalizes_comment() -> None:
    request = FeedbackRequest(rating=5, comment='   ')

    assert request.comment is None


@pytest.mark.parametrize('rating', [0, 6])
def test_feedback_request_rejects_out_of_range_rating(rating: int) -> None:
    with pytest.raises(ValidationError):
        FeedbackRequest(rating=rating)


def test_patient_books_for_themselves(client, patient, doctor, auth_headers) -> None:
    when = (datetime.now() + timedelta(days=3)).replace(microsecond=0)

    response = client.post(
        '/appointments',
        json={'doctor_id': doctor.id, 'date': when.isoformat(), 'patient_id': 999},
        headers=auth_headers(patient),
    )

    assert response.status_code == 201
    body = response.json()
    assert body['patient_id'] == patient.id
    assert body['doctor_id'] == doctor.id
    assert body['status'] == 'pending'
    assert body['paid'] is False


def test_admin_must_name_the_patient_when_booking(client, admin, doctor, auth_headers) -> None:
    response = client.post(
        '/appointments',
        json={'doctor_id': doctor.id, 'date': '2030-01-07T10:00:00'},
        headers=auth_headers(admin),
    )

    assert response.status_code == 400


def test_doctor_cannot_book(client, doctor, auth_headers) -> None:
    response = client.post(
        '/appointments',
        json={'doctor_id': doctor.id, 'date': '2030-01-07T10:00:00'},
        headers=auth_headers(doctor),
    )

    assert response.status_code == 403


def test_malformed_booking_date_is_rejected(client, patient, doctor, auth_headers) -> None:
    response = client.post(
        '/appointments',
        json={'doctor_id': doctor.id, 'date': 'not-a-date'},
        headers=auth_headers(patient),
    )

    assert response.status_code == 422


def test_patient_summary_buckets(client, patient, doctor, make_appointment, auth_headers) -> None:
    now = datetime.now()
    make_appointment(patient, doctor, now + timedelta(days=2), 'booked')
    make_appointment(patient, doctor, now + timedelta(days=5), 'cancelled')
    make_appointment(patient, doctor, now - timedelta(days=5), 'completed', paid=True)
    make_appointment(patient, doctor, now - timedelta(days=9), 'completed')
    make_appointment(patient, doctor, 'not-a-date', 'booked')

    response = client.get(f'/appointments/patient/{patient.id}/summary', headers=auth_headers(patient))

    assert response.status_code == 200
    assert response.json() == {
        'totalAppointments': 5,
        'upcomingAppointments': 1,
        'completedAppointments': 2,
        'pendingBills': 1,
    }


def test_patient_summary_called_directly_rejects_other_patients(db, make_user) -> None:
    owner = make_user(ROLE_PATIENT)
    other = make_user(ROLE_PATIENT)

    with pytest.raises(HTTPException) as exception_info:
        patient_summary(patient_id=owner.id, current_user=other, db=db)

    assert exception_info.value.status_code == 403


def test_patient_cannot_list_someone_elses_appointments(client, make_user, auth_headers) -> None:
    owner = make_user(ROLE_PATIENT)
    other = make_user(ROLE_PATIENT)

    response = client.get(f'/appointments/patient/{owner.id}', headers=auth_headers(other))

    assert response.status_code == 403


def test_doctor_lists_their_appointments(client, patient, doctor, make_appointment, auth_headers) -> None:
    appointment = make_appointment(patient, doctor, datetime(2024, 1, 1, 9, 0))

    response = client.get(f'/appointments/doctor/{doctor.id}', headers=auth_headers(doctor))

    assert response.status_code == 200
    [row] = response.json()
    assert row['id'] == appointment.id
    assert row['patient']['id'] == patient.id


def test_doctor_stats_scenario(client, make_user, make_appointment, auth_headers) -> None:
    doctor = make_user(ROLE_DOCTOR)
    first_patient = make_user(ROLE_PATIENT)
    second_patient = make_user(ROLE_PATIENT)
    make_appointment(first_patient, doctor, datetime(2024, 1, 10, 9, 0), 'completed')
    make_appointment(first_patient, doctor, datetime(2024, 2, 5, 9, 0), 'completed')
    make_appointment(second_patient, doctor, datetime(2024, 3, 1, 9, 0), 'cancelled')

    response = client.get(f'/appointments/doctor/{doctor.id}/stats', headers=auth_headers(doctor))

    assert response.status_code == 200
    body = response.json()
    assert body['totalAppointments'] == 2
    assert body['totalPatients'] == 1


def test_only_assigned_doctor_changes_status(client, make_user, patient, make_appointment, auth_headers) -> None:
    assigned = make_user(ROLE_DOCTOR)
    other = make_user(ROLE_DOCTOR)
    appointment = make_appointment(patient, assigned, datetime(2024, 1, 1, 9, 0), 'pending')

    forbidden = client.patch(
        f'/appointments/{appointment.id}/status', json={'status': 'booked'}, headers=auth_headers(other)
    )
    confirmed = client.patch(
        f'/appointments/{appointment.id}/status', json={'status': 'booked'}, headers=auth_headers(assigned)
    )
    reopened = client.patch(
        f'/appointments/{appointment.id}/status', json={'status': 'pending'}, headers=auth_headers(assigned)
    )
    invalid = client.patch(
        f'/appointments/{appointment.id}/status', json={'status': 'lost'}, headers=auth_headers(assigned)
    )

    assert forbidden.status_code == 403
    assert confirmed.status_code == 200
    assert confirmed.json()['status'] == 'booked'
    assert reopened.json()['status'] == 'pending'
    assert invalid.status_code == 400
    assert invalid.json()['detail']['message'] == 'Invalid status.'


def test_status_change_on_missing_appointment(client, admin, auth_headers) -> None:
    response = client.patch('/appointments/404/status', json={'status': 'booked'}, headers=auth_headers(admin))

    assert response.status_code == 404
    assert response.json()['detail'] == 'Appointment not found'


def test_feedback_flow(client, patient, doctor, make_appointment, auth_headers) -> None:
    booked = make_appointment(patient, doctor, datetime(2024, 1, 1, 9, 0), 'booked')
    done = make_appointment(patient, doctor, datetime(2024, 1, 2, 9, 0), 'completed')

    too_early = client.post(f'/appointments/{booked.id}/feedback', json={'rating': 4}, headers=auth_headers(patient))
    empty = client.post(f'/appointments/{done.id}/feedback', json={}, headers=auth_headers(patient))
    accepted = client.post(
        f'/appointments/{done.id}/feedback',
        json={'rating': 4, 'comment': ' Kind and quick. '},
        headers=auth_headers(patient),
    )

    assert too_early.status_code == 400
    assert empty.status_code == 400
    assert accepted.status_code == 200
    assert accepted.json()['feedback'] == {'rating': 4, 'comment': 'Kind and quick.'}


def test_feedback_keeps_free_form_keys(client, patient, doctor, make_appointment, auth_headers) -> None:
    done = make_appointment(patient, doctor, datetime(2024, 1, 3, 9, 0), 'completed')

    response = client.post(
        f'/appointments/{done.id}/feedback',
        json={'rating': 5, 'waitMinutes': 10, 'wouldRecommend': True},
        headers=auth_headers(patient),
    )

    assert response.status_code == 200
    assert response.json()['feedback'] == {'rating': 5, 'waitMinutes': 10, 'wouldRecommend': True}


def test_patient_list_reports_store_failure(client, patient, auth_headers, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_list(db, patient_id):
        raise OperationalError('SELECT appointments', {}, Exception('connection lost'))

    monkeypatch.setattr(appointment_service, 'list_for_patient', failing_list)

    response = client.get(f'/appointments/patient/{patient.id}', headers=auth_headers(patient))

    assert response.status_code == 503
    assert response.json() == {'detail': STORE_UNAVAILABLE_DETAIL}
