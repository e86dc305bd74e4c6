from datetime import date

import pytest
from fastapi.testclient import TestClient

from clinicbook.auth.dependencies import get_db
from clinicbook.core import config
from clinicbook.main import app
from clinicbook.models.booking import Booking
from clinicbook.scheduling import payfast


@pytest.fixture
def client(db, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('clinicbook.routes.payment_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr(config, 'PAYFAST_PASSPHRASE', 'notify-secret')
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def booking(db, doctor, patient) -> Booking:
    booking = Booking(
        user_id=patient.id,
        doctor_id=doctor.id,
        appointment_date=date(2026, 1, 5),
        appointment_time='09:00',
        booking_fee=1000,
        total_amount=1000,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def _notification(booking_id, payment_status: str) -> dict[str, str]:
    fields = {
        'm_payment_id': str(booking_id),
        'pf_payment_id': '1089250',
        'payment_status': payment_status,
        'item_name': 'Booking fee',
        'amount_gross': '10.00',
    }
    fields['signature'] = payfast.generate_signature(fields, config.PAYFAST_PASSPHRASE)
    return fields


def test_complete_notification_marks_booking_paid(client, db, booking) -> None:
    response = client.post('/payments/payfast/notify', data=_notification(booking.id, 'COMPLETE'))

    assert response.status_code == 200
    db.refresh(booking)
    assert booking.payment_status == 'paid'


def test_tampered_notification_is_rejected(client, db, booking) -> None:
    form = {**_notification(booking.id, 'FAILED'), 'payment_status': 'COMPLETE'}

    response = client.post('/payments/payfast/notify', data=form)

    assert response.status_code == 400
    db.refresh(booking)
    assert booking.payment_status == 'pending'


def test_unrecognised_status_is_acknowledged_without_change(client, db, booking) -> None:
    response = client.post('/payments/payfast/notify', data=_notification(booking.id, 'PENDING'))

    assert response.status_code == 200
    db.refresh(booking)
    assert booking.payment_status == 'pending'


def test_notification_for_unknown_booking(client) -> None:
    response = client.post('/payments/payfast/notify', data=_notification(999, 'COMPLETE'))

    assert response.status_code == 404
