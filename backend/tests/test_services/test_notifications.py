"""Tests for guest notification composition and delivery hooks."""

import logging
from datetime import date
from decimal import Decimal

import pytest

from directstay.models.booking import CONFIRMED
from directstay.services.notifications import LoggingNotifier, compose, notify_safely

pytestmark = pytest.mark.asyncio


@pytest.fixture
def confirmed(make_property, make_booking):
    prop = make_property(name="Harbour Cottage", address="14 Quay Street")
    booking = make_booking(
        prop,
        date(2024, 7, 5),
        date(2024, 7, 8),
        CONFIRMED,
        guest_first_name="Sarah",
        guest_last_name="Chen",
        guest_email="sarah@example.com",
        total_price=Decimal("300.00"),
    )
    return booking, prop


class TestCompose:
    def test_confirmation(self, confirmed) -> None:
        booking, prop = confirmed
        message = compose("booking_confirmation", booking, prop)
        assert message.recipient == "sarah@example.com"
        assert message.subject == f"Booking Confirmed: Harbour Cottage ({booking.confirmation_code})"
        assert "Dear Sarah Chen" in message.body
        assert "Check-in: 2024-07-05" in message.body
        assert "Check-out: 2024-07-08" in message.body
        assert "14 Quay Street" in message.body

    def test_cancellation_without_property(self, confirmed) -> None:
        booking, _ = confirmed
        message = compose("booking_cancellation", booking, None)
        assert "your rental" in message.subject


class TestNotifySafely:
    async def test_logging_notifier(self, confirmed, caplog) -> None:
        booking, prop = confirmed
        with caplog.at_level(logging.INFO, logger="directstay.services.notifications"):
            await notify_safely(LoggingNotifier(), "booking_confirmed", booking, prop)
        assert "sarah@example.com" in caplog.text

    async def test_failure_is_logged_not_raised(self, confirmed, caplog) -> None:
        booking, prop = confirmed

        class Broken:
            async def booking_cancelled(self, booking, prop) -> None:
                raise ConnectionError("smtp down")

        with caplog.at_level(logging.ERROR, logger="directstay.services.notifications"):
            await notify_safely(Broken(), "booking_cancelled", booking, prop)
        assert "Failed to send booking_cancelled" in caplog.text

    async def test_no_notifier(self, confirmed) -> None:
        booking, prop = confirmed
        await notify_safely(None, "booking_confirmed", booking, prop)
