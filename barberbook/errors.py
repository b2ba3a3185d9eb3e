# barberbook/errors.py


class BookingError(Exception):
    """Base class for appointment booking failures."""

    detail = "Booking failed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.detail)
        self.detail = detail or self.detail


class ClosedDay(BookingError):
    """Raised when the barbershop does not open on the requested date."""

    detail = "The barbershop is closed on this date"


class UnknownService(BookingError):
    """Raised when the requested service does not exist or is inactive."""

    detail = "Service not available"


class SlotUnavailable(BookingError):
    """Raised when a start time fails opening-hours, past or fit checks."""

    detail = "This time cannot be booked"


class SlotTaken(BookingError):
    """Raised when a live re-check finds the slot occupied."""

    detail = "This time is no longer available, pick another"


class PersistenceError(BookingError):
    """Raised when the database write itself fails. Safe to retry after a fresh availability check."""

    detail = "Could not save the appointment, try again"


class InvalidTransition(BookingError):
    """Raised on a status change the appointment lifecycle does not allow."""

    detail = "Status change not allowed"


class CorruptRecord(ValueError):
    """An appointment row whose end is not after its start. Skipped and logged, never fatal."""
    pass
