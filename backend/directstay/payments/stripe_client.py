"""Async Stripe Checkout wrapper — the payment collaborator of the booking flow."""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

import stripe
from stripe import StripeClient

from directstay.config import settings
from directstay.dates import to_minor_units
from directstay.errors import PaymentSessionError

logger = logging.getLogger(__name__)

# Stripe rejects checkout sessions that expire sooner than this.
MIN_SESSION_MINUTES = 30


@dataclass(frozen=True)
class PaymentSession:
    """Handle on a hosted checkout: where to send the guest, and how to find it again."""

    session_id: str
    redirect_url: str


class PaymentGateway(Protocol):
    async def create_payment_session(
        self,
        amount: Decimal,
        currency: str,
        customer_email: str,
        metadata: dict[str, str],
        description: str,
    ) -> PaymentSession: ...

    async def expire_payment_session(self, session_id: str) -> bool: ...


def get_stripe_client() -> StripeClient:
    """Create a StripeClient instance with async HTTP support."""
    return StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )


class StripePaymentGateway:
    """Opens one-off Stripe Checkout sessions for a booking's total."""

    def __init__(
        self,
        client: StripeClient | None = None,
        success_url: str | None = None,
        cancel_url: str | None = None,
        hold_minutes: int | None = None,
    ) -> None:
        self.client = client or get_stripe_client()
        self.success_url = success_url or settings.payment_success_url
        self.cancel_url = cancel_url or settings.payment_cancel_url
        self.hold_minutes = max(hold_minutes or settings.pending_hold_minutes, MIN_SESSION_MINUTES)

    async def create_payment_session(
        self,
        amount: Decimal,
        currency: str,
        customer_email: str,
        metadata: dict[str, str],
        description: str,
    ) -> PaymentSession:
        logger.info(
            "Creating checkout session for booking %s (%s %s)",
            metadata.get("booking_id"),
            amount,
            currency,
        )
        try:
            session = await self.client.v1.checkout.sessions.create_async(
                params={
                    "mode": "payment",
                    "payment_method_types": ["card"],
                    "line_items": [
                        {
                            "price_data": {
                                "currency": currency,
                                "product_data": {
                                    "name": "Accommodation Booking",
                                    "description": description,
                                },
                                "unit_amount": to_minor_units(amount),
                            },
                            "quantity": 1,
                        }
                    ],
                    "customer_email": customer_email,
                    "metadata": metadata,
                    "success_url": self.success_url,
                    "cancel_url": self.cancel_url,
                    "expires_at": int(time.time()) + self.hold_minutes * 60,
                }
            )
        except stripe.StripeError as e:
            logger.warning("Stripe rejected checkout session: %s", e)
            raise PaymentSessionError("Payment provider could not start checkout") from e

        if not session.url:
            raise PaymentSessionError("Payment provider returned no checkout URL")
        logger.info("Created checkout session %s", session.id)
        return PaymentSession(session_id=session.id, redirect_url=session.url)

    async def expire_payment_session(self, session_id: str) -> bool:
        """Close a checkout session so it can no longer be paid.

        Returns False when the guest already completed payment; the booking must
        then be left for the payment webhook instead of being released.
        """
        try:
            session = await self.client.v1.checkout.sessions.retrieve_async(session_id)
            if session.status == "complete":
                return False
            if session.status == "open":
                await self.client.v1.checkout.sessions.expire_async(session_id)
                logger.info("Expired checkout session %s", session_id)
        except stripe.StripeError as e:
            logger.warning("Could not expire checkout session %s: %s", session_id, e)
            raise PaymentSessionError("Payment provider could not expire checkout") from e
        return True


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event (synchronous)."""
    client = get_stripe_client()
    return client.construct_event(payload, sig_header, settings.stripe_webhook_secret)
