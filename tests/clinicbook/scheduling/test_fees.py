import pytest
from sqlalchemy.exc import OperationalError

from clinicbook.models.membership import Membership
from clinicbook.scheduling.fees import FeeQuote, consume_free_credit, quote_booking_fee


def test_no_membership_pays_base_fee() -> None:
    assert quote_booking_fee(None) == FeeQuote(booking_fee=1000, consumes_free_credit=False)


def test_basic_membership_pays_base_fee() -> None:
    membership = Membership(membership_type='basic', free_bookings_remaining=3)

    assert quote_booking_fee(membership) == FeeQuote(booking_fee=1000, consumes_free_credit=False)


def test_premium_membership_without_credits_pays_base_fee() -> None:
    membership = Membership(membership_type='premium', free_bookings_remaining=0)

    assert quote_booking_fee(membership).booking_fee == 1000


def test_premium_membership_with_credit_books_free() -> None:
    membership = Membership(membership_type='premium', free_bookings_remaining=2)

    assert quote_booking_fee(membership) == FeeQuote(booking_fee=0, consumes_free_credit=True)


def test_consume_free_credit_never_goes_below_zero(db, premium_patient) -> None:
    assert consume_free_credit(db, premium_patient.id) is True
    assert consume_free_credit(db, premium_patient.id) is False

    membership = db.query(Membership).filter(Membership.user_id == premium_patient.id).one()
    assert membership.free_bookings_remaining == 0


def test_consume_free_credit_failure_is_not_raised(db, premium_patient, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_commit():
        raise OperationalError('COMMIT', {}, Exception('connection lost'))

    monkeypatch.setattr(db, 'commit', failing_commit)

    assert consume_free_credit(db, premium_patient.id) is False
