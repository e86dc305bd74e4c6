import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicbook.auth.dependencies import get_db
from clinicbook.routes.common import database_unavailable, ensure_database_ready
from clinicbook.scheduling import payfast
from clinicbook.scheduling.booking_lifecycle import record_payment
from clinicbook.scheduling.errors import BookingNotFound

router = APIRouter(tags=['payments'])

logger = logging.getLogger(__name__)


@router.post('/payfast/notify', status_code=status.HTTP_200_OK)
async def payfast_notify(request: Request, db: Session = Depends(get_db)):
    form_data = {key: str(value) for key, value in (await request.form()).items()}

    if not payfast.verify_notification(form_data):
        logger.warning('Rejected PayFast notification with invalid signature for %s', form_data.get('m_payment_id'))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid signature.')

    try:
        booking_id = int(form_data.get('m_payment_id', ''))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid payment reference.') from exc

    payment_status = payfast.payment_status_from_notification(form_data.get('payment_status'))
    if payment_status is None:
        logger.info('Ignoring PayFast status %s for booking %s', form_data.get('payment_status'), booking_id)
        return Response(status_code=status.HTTP_200_OK)

    ensure_database_ready()

    try:
        record_payment(db, booking_id, payment_status)
    except BookingNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return Response(status_code=status.HTTP_200_OK)
