"""Errors raised by the scheduling and booking core.

Routes translate these into HTTP responses; nothing in this package knows
about HTTP status codes except where a remote function reports one.
"""


class BookingError(Exception):
    """Base class for scheduling and booking failures."""

    message = 'Booking failed.'

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class SlotUnavailable(BookingError):
    """The requested (doctor, date, time) is taken or no longer scheduled."""

    message = 'Time slot no longer available'
    code = 'slot_unavailable'


class DoctorNotFound(BookingError):
    message = 'Doctor not found.'


class BookingNotFound(BookingError):
    message = 'Booking not found.'


class BookingStateError(BookingError):
    """A lifecycle transition was requested from the wrong state."""

    message = 'Booking cannot be changed in its current state.'


class InvalidScheduleSelection(BookingError, ValueError):
    message = 'Invalid schedule selection.'


class SchedulePersistenceError(BookingError):
    message = 'Failed to save schedule.'


class TransportFailure(BookingError):
    """A remote function could not be reached or answered with a server error."""

    message = 'Remote function unreachable.'


class FunctionRejected(BookingError):
    """A remote function answered with a business-level rejection."""

    message = 'Remote function rejected the request.'

    def __init__(self, message: str | None = None, status_code: int = 400, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def is_slot_conflict(self) -> bool:
        return self.code == SlotUnavailable.code or self.status_code == 409


class PaymentInitiationFailure(BookingError):
    """The booking exists but a payment session could not be started."""

    message = 'Payment initialization failed'
