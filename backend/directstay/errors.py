"""Domain errors raised by the booking core.

Routers never catch these; ``directstay.main`` maps each class to an HTTP
status through exception handlers.
"""

from datetime import date


class BookingError(Exception):
    """Base class for every error the booking core raises on purpose."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Bad input the guest can fix. Never retried."""

    status_code = 422


class InvalidRangeError(ValidationError):
    """A date range whose end is not strictly after its start."""

    def __init__(self, start: date, end: date) -> None:
        super().__init__(f"check_out ({end}) must be after check_in ({start})")
        self.start = start
        self.end = end


class NotFoundError(BookingError):
    """Referenced property or booking does not exist."""

    status_code = 404


class ConflictError(BookingError):
    """Requested nights are not available; the guest must pick other dates."""

    status_code = 409

    def __init__(
        self,
        message: str,
        dates: list[date] | None = None,
        source: str | None = None,
    ) -> None:
        super().__init__(message)
        self.dates = dates or []
        self.source = source  # "blocked" or "booking"


class StorageError(BookingError):
    """Backing store unreachable or failed. Safe to retry the whole operation."""

    status_code = 503


class PaymentSessionError(BookingError):
    """The payment collaborator could not open a checkout session."""

    status_code = 502


class ReconciliationError(BookingError):
    """A payment event referenced an unknown or already-terminal booking.

    Logged by the webhook endpoint and acknowledged; never retried.
    """

    status_code = 409
