"""Optional Stripe integration tests — hit real Stripe test mode API.

These tests are auto-skipped when STRIPE_SECRET_KEY is not set (e.g., in CI).
"""

import os
from decimal import Decimal

import pytest
import stripe

from directstay.payments.stripe_client import StripePaymentGateway, construct_webhook_event

SKIP_REASON = "STRIPE_SECRET_KEY not set — skipping real Stripe integration tests"
pytestmark = [
    pytest.mark.asyncio,
    pytest.mark.skipif(not os.getenv("STRIPE_SECRET_KEY"), reason=SKIP_REASON),
]


class TestStripeIntegration:
    """Real Stripe API tests — only run when STRIPE_SECRET_KEY is available."""

    async def test_create_checkout_session_returns_url(self):
        """Verify checkout session creation returns a hosted checkout URL."""
        gateway = StripePaymentGateway(
            success_url="https://example.com/success?session_id={CHECKOUT_SESSION_ID}",
            cancel_url="https://example.com/cancel",
        )
        session = await gateway.create_payment_session(
            amount=Decimal("123.45"),
            currency="usd",
            customer_email="integration-test@directstay.test",
            metadata={"booking_id": "integration-test", "confirmation_code": "BOK-TEST"},
            description="Integration test stay",
        )
        assert session.session_id.startswith("cs_")
        assert "checkout.stripe.com" in session.redirect_url

    def test_construct_webhook_event_invalid_signature(self):
        """Verify signature verification rejects invalid signatures."""
        with pytest.raises(stripe.SignatureVerificationError):
            construct_webhook_event(
                payload=b'{"type": "test"}',
                sig_header="t=12345,v1=invalid_signature",
            )
