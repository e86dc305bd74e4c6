import pytest
from fastapi.testclient import TestClient

from clinicbook.auth.dependencies import get_current_user, get_db
from clinicbook.main import app
from clinicbook.scheduling.schedule_store import save_schedule


@pytest.fixture
def client(db, patient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('clinicbook.routes.function_routes.ensure_database_ready', lambda: None)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: patient
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def booking_payload(db, doctor, upcoming_monday):
    save_schedule(db, doctor.id, {1: ['09:00', '09:30']})
    return {
        'doctor_id': doctor.id,
        'appointment_date': upcoming_monday.isoformat(),
        'appointment_time': '09:30',
        'patient_notes': 'Payment method: cash',
    }


@pytest.mark.parametrize('prefix', ['/functions/v1', '/functions'])
def test_create_booking_function_returns_success_envelope(client, booking_payload, prefix: str) -> None:
    response = client.post(f'{prefix}/create-booking', json=booking_payload)

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['booking']['appointment_time'] == '09:30'
    assert body['booking']['status'] == 'pending'
    assert body['booking']['booking_fee'] == 1000


def test_create_booking_function_reports_slot_conflict(client, booking_payload, other_patient) -> None:
    client.post('/functions/v1/create-booking', json=booking_payload)
    app.dependency_overrides[get_current_user] = lambda: other_patient

    response = client.post('/functions/v1/create-booking', json=booking_payload)

    assert response.status_code == 409
    assert response.json() == {
        'success': False,
        'error': 'Time slot no longer available',
        'code': 'slot_unavailable',
    }


def test_create_booking_function_reports_unknown_doctor(client, booking_payload) -> None:
    response = client.post('/functions/v1/create-booking', json={**booking_payload, 'doctor_id': 404})

    assert response.status_code == 404
    assert response.json()['success'] is False


def test_create_payfast_payment_returns_payment_url(client, booking_payload) -> None:
    booking = client.post('/functions/v1/create-booking', json=booking_payload).json()['booking']

    response = client.post(
        '/functions/v1/create-payfast-payment',
        json={
            'booking_id': booking['id'],
            'amount': booking['booking_fee'],
            'description': 'Booking fee for appointment with Dr. Thandi Mokoena',
            'doctor_name': 'Dr. Thandi Mokoena',
            'date': booking['appointment_date'],
            'time': booking['appointment_time'],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert f"m_payment_id={booking['id']}" in body['payment_url']
    assert 'amount=10.00' in body['payment_url']


def test_create_payfast_payment_rejects_wrong_amount(client, booking_payload) -> None:
    booking = client.post('/functions/v1/create-booking', json=booking_payload).json()['booking']

    response = client.post(
        '/functions/v1/create-payfast-payment',
        json={
            'booking_id': booking['id'],
            'amount': 1,
            'description': 'Booking fee',
            'date': booking['appointment_date'],
            'time': booking['appointment_time'],
        },
    )

    assert response.status_code == 400
    assert response.json()['error'] == 'Payment amount does not match the booking fee.'


def test_create_payfast_payment_hides_unknown_booking(client) -> None:
    response = client.post(
        '/functions/v1/create-payfast-payment',
        json={'booking_id': 999, 'amount': 1000, 'description': 'Booking fee', 'date': '2026-01-05', 'time': '09:00'},
    )

    assert response.status_code == 404


def test_create_booking_function_retry_returns_same_booking(client, booking_payload) -> None:
    first = client.post('/functions/v1/create-booking', json=booking_payload).json()['booking']

    response = client.post('/functions/create-booking', json=booking_payload)

    assert response.status_code == 200
    assert response.json()['booking']['id'] == first['id']
