"""PayFast redirect URLs and ITN (instant transaction notification) checks."""

import hashlib
from datetime import date
from urllib.parse import quote_plus, urlencode

from clinicbook.core import config

PAYFAST_PAID_STATUSES = {'COMPLETE'}
PAYFAST_FAILED_STATUSES = {'FAILED', 'CANCELLED'}


def format_amount(amount_cents: int) -> str:
    return f'{amount_cents / 100:.2f}'


def generate_signature(fields: dict[str, str], passphrase: str | None = None) -> str:
    # Field order matters and blank values are left out.
    parts = [f'{key}={quote_plus(str(value).strip())}' for key, value in fields.items() if str(value).strip() != '']
    if passphrase:
        parts.append(f'passphrase={quote_plus(passphrase.strip())}')
    return hashlib.md5('&'.join(parts).encode('utf-8')).hexdigest()


def build_payment_fields(
    booking_id: int,
    amount_cents: int,
    description: str,
    doctor_name: str,
    appointment_date: date,
    appointment_time: str,
) -> dict[str, str]:
    fields = {
        'merchant_id': config.PAYFAST_MERCHANT_ID,
        'merchant_key': config.PAYFAST_MERCHANT_KEY,
        'return_url': f'{config.PAYFAST_RETURN_URL}?booking_id={booking_id}',
        'cancel_url': config.PAYFAST_CANCEL_URL,
        'notify_url': config.PAYFAST_NOTIFY_URL,
        'm_payment_id': str(booking_id),
        'amount': format_amount(amount_cents),
        'item_name': description[:100],
        'custom_str1': appointment_date.isoformat(),
        'custom_str2': appointment_time,
        'custom_str3': doctor_name[:255],
    }
    fields['signature'] = generate_signature(fields, config.PAYFAST_PASSPHRASE)
    return fields


def build_payment_url(
    booking_id: int,
    amount_cents: int,
    description: str,
    doctor_name: str,
    appointment_date: date,
    appointment_time: str,
) -> str:
    fields = build_payment_fields(booking_id, amount_cents, description, doctor_name, appointment_date, appointment_time)
    return f'{config.PAYFAST_PROCESS_URL}?{urlencode(fields)}'


def verify_notification(form_data: dict[str, str]) -> bool:
    received = form_data.get('signature')
    if not received:
        return False

    fields = {key: value for key, value in form_data.items() if key != 'signature'}
    return generate_signature(fields, config.PAYFAST_PASSPHRASE) == received


def payment_status_from_notification(payfast_status: str | None) -> str | None:
    normalized = (payfast_status or '').strip().upper()
    if normalized in PAYFAST_PAID_STATUSES:
        return 'paid'
    if normalized in PAYFAST_FAILED_STATUSES:
        return 'failed'
    return None
