import hashlib
from datetime import date
from urllib.parse import parse_qs, urlparse

import pytest

from clinicbook.core import config
from clinicbook.scheduling import payfast


def test_format_amount_uses_two_decimals() -> None:
    assert payfast.format_amount(1000) == '10.00'
    assert payfast.format_amount(5) == '0.05'


def test_signature_skips_blank_fields_and_appends_passphrase() -> None:
    fields = {'merchant_id': '10000100', 'item_name': 'Booking fee', 'custom_str1': ''}
    expected = hashlib.md5(b'merchant_id=10000100&item_name=Booking+fee&passphrase=secret').hexdigest()

    assert payfast.generate_signature(fields, 'secret') == expected


def test_payment_url_carries_booking_reference(monkeypatch) -> None:
    monkeypatch.setattr(config, 'PAYFAST_PASSPHRASE', '')

    url = payfast.build_payment_url(12, 1000, 'Booking fee', 'Dr. Thandi Mokoena', date(2026, 1, 5), '09:00')

    parsed = urlparse(url)
    query = {key: values[0] for key, values in parse_qs(parsed.query).items()}
    assert f'{parsed.scheme}://{parsed.netloc}{parsed.path}' == config.PAYFAST_PROCESS_URL
    assert query['m_payment_id'] == '12'
    assert query['amount'] == '10.00'
    assert query['return_url'].endswith('?booking_id=12')
    assert query['custom_str1'] == '2026-01-05'
    assert query['custom_str2'] == '09:00'


def test_notification_signature_round_trip(monkeypatch) -> None:
    monkeypatch.setattr(config, 'PAYFAST_PASSPHRASE', 'secret')
    fields = payfast.build_payment_fields(12, 1000, 'Booking fee', 'Dr. Thandi Mokoena', date(2026, 1, 5), '09:00')

    assert payfast.verify_notification(fields)
    assert not payfast.verify_notification({**fields, 'amount': '0.01'})
    assert not payfast.verify_notification({key: value for key, value in fields.items() if key != 'signature'})


@pytest.mark.parametrize(
    ('payfast_status', 'expected'),
    [
        ('COMPLETE', 'paid'),
        ('complete', 'paid'),
        ('FAILED', 'failed'),
        ('CANCELLED', 'failed'),
        ('PENDING', None),
        (None, None),
    ],
)
def test_payment_status_from_notification(payfast_status, expected) -> None:
    assert payfast.payment_status_from_notification(payfast_status) == expected
