"""Booking lifecycle — applies payment outcomes to bookings.

State machine::

    pending --payment_succeeded--> confirmed   (nights materialized as blocked dates)
    pending --payment_expired----> cancelled
    pending --payment_failed-----> payment_failed

Payment events arrive at least once, so every transition is idempotent: a
replayed event finds the booking already in its target state and does
nothing. Events for unknown bookings, or that would move a booking out of a
different terminal state, raise ``ReconciliationError`` for the caller to log.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from directstay.config import settings
from directstay.dates import dates_in_range
from directstay.errors import PaymentSessionError, ReconciliationError
from directstay.models.blocked_date import BOOKED_REASON
from directstay.models.booking import CANCELLED, CONFIRMED, PAYMENT_FAILED, PENDING, Booking
from directstay.payments.stripe_client import MIN_SESSION_MINUTES, PaymentGateway
from directstay.services.booking_store import BookingStore
from directstay.services.notifications import Notifier, notify_safely

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_succeeded"
PAYMENT_EXPIRED = "payment_expired"
PAYMENT_FAILED_EVENT = "payment_failed"

# Status each payment outcome moves a pending booking to.
TARGET_STATUS = {
    PAYMENT_SUCCEEDED: CONFIRMED,
    PAYMENT_EXPIRED: CANCELLED,
    PAYMENT_FAILED_EVENT: PAYMENT_FAILED,
}

# Outcomes returned by apply_payment_event
APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"


@dataclass(frozen=True)
class PaymentEvent:
    """A verified payment outcome, already translated from the provider's format."""

    kind: str
    booking_id: uuid.UUID | None = None
    session_id: str | None = None
    event_id: str | None = None


async def confirm_booking(store: BookingStore, booking: Booking) -> int:
    """Move a pending booking to confirmed and block its nights.

    Both writes land in the caller's transaction. Returns the number of
    blocked-date rows inserted.
    """
    event_id = uuid.uuid4()
    booking.status = CONFIRMED
    booking.blocked_event_id = event_id
    await store.save()
    inserted = await store.add_blocked_dates(
        booking.property_id,
        dates_in_range(booking.check_in, booking.check_out),
        reason=BOOKED_REASON,
        event_id=event_id,
    )
    logger.info(
        "Booking %s confirmed; materialized %d night(s) under event %s",
        booking.id,
        inserted,
        event_id,
    )
    return inserted


async def release_booking(store: BookingStore, booking: Booking, status: str) -> int:
    """Set a releasing status and delete any nights materialized for the booking.

    Returns the number of blocked-date rows removed.
    """
    booking.status = status
    await store.save()
    removed = 0
    if booking.blocked_event_id is not None:
        removed = await store.remove_blocked_event(booking.property_id, booking.blocked_event_id)
    logger.info("Booking %s moved to %s; reopened %d night(s)", booking.id, status, removed)
    return removed


async def _find_booking(store: BookingStore, event: PaymentEvent) -> Booking:
    booking = None
    if event.booking_id is not None:
        booking = await store.get_booking(event.booking_id, for_update=True)
    if booking is None and event.session_id:
        booking = await store.get_booking_by_payment_reference(event.session_id, for_update=True)
    if booking is None:
        raise ReconciliationError(
            f"No booking for payment event {event.event_id} (booking={event.booking_id}, session={event.session_id})"
        )
    return booking


async def apply_payment_event(
    store: BookingStore,
    event: PaymentEvent,
    notifier: Notifier | None = None,
) -> str:
    """Apply one payment outcome. Returns ``applied``, ``duplicate`` or ``ignored``."""
    target = TARGET_STATUS.get(event.kind)
    if target is None:
        logger.info("Ignoring payment event %s of kind %r", event.event_id, event.kind)
        return IGNORED

    booking = await _find_booking(store, event)

    if booking.status == target:
        logger.info("Payment event %s replayed for booking %s (already %s)", event.event_id, booking.id, target)
        return DUPLICATE

    if booking.status != PENDING:
        if target == CONFIRMED:
            logger.error(
                "Payment succeeded for booking %s which is already %s; the charge needs a manual refund",
                booking.id,
                booking.status,
            )
        raise ReconciliationError(f"Booking {booking.id} is {booking.status}; cannot apply {event.kind}")

    if event.session_id and booking.payment_reference and booking.payment_reference != event.session_id:
        logger.warning(
            "Payment event %s session %s differs from booking %s reference %s",
            event.event_id,
            event.session_id,
            booking.id,
            booking.payment_reference,
        )

    if target == CONFIRMED:
        await confirm_booking(store, booking)
    else:
        await release_booking(store, booking, target)
    await store.commit()

    prop = await store.get_property(booking.property_id)
    if target == CONFIRMED:
        await notify_safely(notifier, "booking_confirmed", booking, prop)
    else:
        await notify_safely(notifier, "booking_cancelled", booking, prop)
    return APPLIED


def minimum_hold_age() -> timedelta:
    """Youngest a pending hold can be when the sweep releases it.

    Its checkout session has expired by then, and a webhook delivered late
    has had the grace period to land first.
    """
    session_minutes = max(settings.pending_hold_minutes, MIN_SESSION_MINUTES)
    return timedelta(minutes=session_minutes + settings.pending_hold_grace_minutes)


async def expire_stale_pending(
    store: BookingStore,
    older_than: timedelta | None = None,
    gateway: PaymentGateway | None = None,
) -> list[uuid.UUID]:
    """Cancel pending bookings whose payment never completed.

    Pending bookings block the calendar, so a hold whose checkout was abandoned
    (or never created) must be released by this sweep. ``older_than`` is never
    allowed below ``minimum_hold_age()``. With a ``gateway``, each hold's
    checkout session is expired first; a hold whose session was already paid
    is left pending for the webhook to confirm.
    """
    floor = minimum_hold_age()
    if older_than is None:
        older_than = floor
    elif older_than < floor:
        logger.warning("Sweep age %s is below the checkout lifetime; using %s", older_than, floor)
        older_than = floor

    stale = await store.list_stale_pending(older_than)
    released = []
    for booking in stale:
        if gateway is not None and booking.payment_reference:
            try:
                closed = await gateway.expire_payment_session(booking.payment_reference)
            except PaymentSessionError:
                logger.warning("Keeping booking %s pending until its checkout can be expired", booking.id)
                continue
            if not closed:
                logger.info("Checkout for booking %s was paid; leaving it for the payment webhook", booking.id)
                continue
        await release_booking(store, booking, CANCELLED)
        released.append(booking.id)
    await store.commit()
    if released:
        logger.info("Expired %d stale pending booking(s)", len(released))
    return released
