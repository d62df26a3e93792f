"""Guest notifications fired by booking lifecycle transitions.

Delivery is not wired to a mail provider yet; ``LoggingNotifier`` composes the
message and logs it so the hook points stay exercised.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from directstay.dates import format_date
from directstay.models.booking import Booking
from directstay.models.property import Property

logger = logging.getLogger(__name__)

TEMPLATES = {
    "booking_confirmation": {
        "subject": "Booking Confirmed: {property_name} ({confirmation_code})",
        "body": (
            "Dear {guest_name},\n\n"
            "Your booking at {property_name} has been confirmed.\n\n"
            "Booking Details:\n"
            "- Confirmation code: {confirmation_code}\n"
            "- Address: {address}\n"
            "- Check-in: {check_in}\n"
            "- Check-out: {check_out}\n"
            "- Guests: {num_guests}\n"
            "- Total Price: {total_price}\n\n"
            "Thank you for booking direct!"
        ),
    },
    "booking_cancellation": {
        "subject": "Booking Cancelled: {property_name} ({confirmation_code})",
        "body": (
            "Dear {guest_name},\n\n"
            "Your booking at {property_name} ({check_in} to {check_out}) "
            "has been cancelled.\n\n"
            "If you have any questions, please reply to this email."
        ),
    },
}


@dataclass(frozen=True)
class Notification:
    recipient: str
    subject: str
    body: str


class Notifier(Protocol):
    async def booking_confirmed(self, booking: Booking, prop: Property | None) -> None: ...

    async def booking_cancelled(self, booking: Booking, prop: Property | None) -> None: ...


def compose(template: str, booking: Booking, prop: Property | None) -> Notification:
    """Fill a template from a booking and its property."""
    fields = {
        "guest_name": f"{booking.guest_first_name} {booking.guest_last_name}",
        "property_name": prop.name if prop else "your rental",
        "address": (prop.address if prop else None) or "N/A",
        "confirmation_code": booking.confirmation_code,
        "check_in": format_date(booking.check_in),
        "check_out": format_date(booking.check_out),
        "num_guests": booking.num_guests,
        "total_price": booking.total_price,
    }
    spec = TEMPLATES[template]
    return Notification(
        recipient=booking.guest_email,
        subject=spec["subject"].format(**fields),
        body=spec["body"].format(**fields),
    )


class LoggingNotifier:
    """Default notifier: composes the guest email and logs it."""

    async def booking_confirmed(self, booking: Booking, prop: Property | None) -> None:
        message = compose("booking_confirmation", booking, prop)
        logger.info("Notification to %s: %s", message.recipient, message.subject)

    async def booking_cancelled(self, booking: Booking, prop: Property | None) -> None:
        message = compose("booking_cancellation", booking, prop)
        logger.info("Notification to %s: %s", message.recipient, message.subject)


async def notify_safely(notifier: Notifier | None, event: str, booking: Booking, prop: Property | None) -> None:
    """Send a notification after the state change has committed.

    A failed notification is logged with its traceback; the booking state it
    reports on stays as committed.
    """
    if notifier is None:
        return
    try:
        await getattr(notifier, event)(booking, prop)
    except Exception:
        logger.exception("Failed to send %s notification for booking %s", event, booking.id)
