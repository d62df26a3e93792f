"""Stripe webhook endpoint — receives checkout events and reconciles bookings."""

import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status

from directstay.api.deps import get_booking_store, get_notifier
from directstay.errors import ReconciliationError
from directstay.payments.stripe_client import construct_webhook_event
from directstay.payments.webhooks import translate_event
from directstay.services.booking_store import BookingStore
from directstay.services.notifications import Notifier
from directstay.services.reconciler import apply_payment_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    store: BookingStore = Depends(get_booking_store),
    notifier: Notifier = Depends(get_notifier),
) -> dict[str, str]:
    """Receive and process Stripe webhook events."""
    # 1. Read raw body (MUST be raw bytes for signature verification)
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")
    if not sig_header:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header",
        )

    # 2. Verify signature
    try:
        event = construct_webhook_event(payload, sig_header)
    except stripe.SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        ) from e
    except ValueError as e:
        logger.warning("Invalid webhook payload")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        ) from e

    # 3. Translate to a payment outcome
    payment_event = translate_event(event)
    if payment_event is None:
        return {"status": "ignored"}

    logger.info("Processing webhook event: %s (id=%s)", event.type, event.id)

    # 4. Reconcile. Storage errors propagate (503) so Stripe redelivers.
    try:
        outcome = await apply_payment_event(store, payment_event, notifier)
    except ReconciliationError as e:
        logger.warning("Webhook event %s not applied: %s", event.id, e.message)
        return {"status": "ignored"}

    return {"status": outcome}
