"""Stripe webhook event translation — Checkout events to booking payment outcomes."""

import logging
import uuid

import stripe

from directstay.services.reconciler import (
    PAYMENT_EXPIRED,
    PAYMENT_FAILED_EVENT,
    PAYMENT_SUCCEEDED,
    PaymentEvent,
)

logger = logging.getLogger(__name__)

# Map Stripe event types to payment outcomes
EVENT_KINDS = {
    "checkout.session.completed": PAYMENT_SUCCEEDED,
    "checkout.session.async_payment_succeeded": PAYMENT_SUCCEEDED,
    "checkout.session.expired": PAYMENT_EXPIRED,
    "checkout.session.async_payment_failed": PAYMENT_FAILED_EVENT,
}

# Checkout completes before delayed payment methods settle.
SETTLED_PAYMENT_STATUSES = {"paid", "no_payment_required"}


def _get_metadata(session) -> dict:
    metadata = getattr(session, "metadata", None)
    if not metadata:
        return {}
    return dict(metadata)


def _parse_booking_id(raw: str | None) -> uuid.UUID | None:
    if not raw:
        return None
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        logger.warning("Ignoring malformed booking id %r in checkout metadata", raw)
        return None


def translate_event(event: stripe.Event) -> PaymentEvent | None:
    """Turn a verified Stripe event into a ``PaymentEvent``, or ``None`` if irrelevant."""
    kind = EVENT_KINDS.get(event.type)
    if kind is None:
        logger.debug("Unhandled webhook event type: %s", event.type)
        return None

    session = event.data.object
    if event.type == "checkout.session.completed":
        payment_status = getattr(session, "payment_status", None)
        if payment_status not in SETTLED_PAYMENT_STATUSES:
            logger.info(
                "Checkout session %s completed with payment_status=%s; waiting for async payment",
                session.id,
                payment_status,
            )
            return None

    metadata = _get_metadata(session)
    # "bookingId" is the key older checkout sessions were created with.
    booking_id = _parse_booking_id(metadata.get("booking_id") or metadata.get("bookingId"))
    return PaymentEvent(kind=kind, booking_id=booking_id, session_id=session.id, event_id=event.id)
