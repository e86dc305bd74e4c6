import logging
from typing import NamedTuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicbook.core import config
from clinicbook.models.membership import Membership

logger = logging.getLogger(__name__)

PREMIUM_MEMBERSHIP = 'premium'


class FeeQuote(NamedTuple):
    booking_fee: int
    consumes_free_credit: bool


def get_membership(db: Session, user_id: int) -> Membership | None:
    return db.query(Membership).filter(Membership.user_id == user_id).first()


def quote_booking_fee(membership: Membership | None) -> FeeQuote:
    if (
        membership is not None
        and membership.membership_type == PREMIUM_MEMBERSHIP
        and (membership.free_bookings_remaining or 0) > 0
    ):
        return FeeQuote(booking_fee=0, consumes_free_credit=True)

    return FeeQuote(booking_fee=config.BOOKING_FEE_CENTS, consumes_free_credit=False)


def consume_free_credit(db: Session, user_id: int) -> bool:
    """Take one free booking credit; a failure here never undoes the booking."""
    try:
        updated = db.query(Membership).filter(
            Membership.user_id == user_id,
            Membership.free_bookings_remaining > 0,
        ).update(
            {Membership.free_bookings_remaining: Membership.free_bookings_remaining - 1},
            synchronize_session=False,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Failed to consume free booking credit for user %s', user_id)
        return False

    if not updated:
        logger.warning('No free booking credit left to consume for user %s', user_id)
    return bool(updated)
