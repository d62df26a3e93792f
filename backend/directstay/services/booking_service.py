"""Booking intake, conflict guard, and host calendar operations.

``submit_booking`` is the only path that creates bookings. It re-checks the
requested nights with the availability oracle while holding the property's
booking lock, inserts a pending hold, commits, and only then asks the payment
provider for a checkout session.
"""

import asyncio
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from directstay.availability import AvailabilitySnapshot, Conflict, UnavailableNight, find_conflict
from directstay.config import settings
from directstay.dates import CENTS, DateRange, StayQuote, dates_in_range, format_date, quote_stay
from directstay.errors import (
    BookingError,
    ConflictError,
    NotFoundError,
    PaymentSessionError,
    StorageError,
    ValidationError,
)
from directstay.models.booking import CANCELLED, CONFIRMED, PENDING, Booking
from directstay.models.property import Property
from directstay.payments.stripe_client import PaymentGateway, PaymentSession
from directstay.services.booking_store import BookingStore
from directstay.services.notifications import Notifier, notify_safely
from directstay.services.reconciler import release_booking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuestInfo:
    first_name: str
    last_name: str
    email: str
    phone: str


@dataclass(frozen=True)
class BookingSubmission:
    """A pending hold plus where the guest goes to pay for it."""

    booking: Booking
    property: Property
    payment: PaymentSession


@dataclass(frozen=True)
class AvailabilityCheck:
    check_in: date
    check_out: date
    available: bool
    conflict: Conflict | None
    quote: StayQuote


def new_confirmation_code() -> str:
    return f"BOK-{uuid.uuid4().hex[:8].upper()}"


def _conflict_error(conflict: Conflict) -> ConflictError:
    days = ", ".join(format_date(day) for day in conflict.dates)
    if conflict.source == "blocked":
        message = f"Selected dates are not available (blocked: {days})"
    else:
        message = f"Selected dates are not available (already booked: {days})"
    return ConflictError(message, dates=conflict.dates, source=conflict.source)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_property(store: BookingStore, property_id: uuid.UUID) -> Property:
    prop = await store.get_property(property_id)
    if prop is None:
        raise NotFoundError("Property not found")
    return prop


async def load_snapshot(
    store: BookingStore,
    property_id: uuid.UUID,
    start: date | None = None,
    end: date | None = None,
) -> AvailabilitySnapshot:
    """Oracle inputs for one property, optionally windowed to ``[start, end)``."""
    blocked = await store.list_blocked_dates(property_id, start, end)
    bookings = await store.list_active_bookings(property_id, start, end)
    return AvailabilitySnapshot.build(blocked, bookings)


async def get_unavailable_dates(
    store: BookingStore,
    property_id: uuid.UUID,
    start: date,
    end: date,
) -> list[UnavailableNight]:
    """Merged blocked and booked nights in ``[start, end)``."""
    await get_property(store, property_id)
    window = dates_in_range(start, end)
    snapshot = await load_snapshot(store, property_id, window.start, window.end)
    return snapshot.unavailable_dates(window.start, window.end)


def validate_stay(prop: Property, stay: DateRange, num_guests: int = 1) -> None:
    if len(stay) < prop.min_stay_nights:
        raise ValidationError(
            f"Minimum stay is {prop.min_stay_nights} night(s); requested {len(stay)}"
        )
    if num_guests < 1:
        raise ValidationError("At least one guest is required")
    if prop.max_guests is not None and num_guests > prop.max_guests:
        raise ValidationError(f"This property sleeps at most {prop.max_guests} guest(s)")


async def quote(
    store: BookingStore,
    property_id: uuid.UUID,
    check_in: date,
    check_out: date,
) -> StayQuote:
    prop = await get_property(store, property_id)
    stay = dates_in_range(check_in, check_out)
    validate_stay(prop, stay)
    overrides = await store.list_price_overrides(property_id, stay.start, stay.end)
    return quote_stay(stay.start, stay.end, prop, overrides)


async def check_availability(
    store: BookingStore,
    property_id: uuid.UUID,
    check_in: date,
    check_out: date,
) -> AvailabilityCheck:
    """Same rules as the conflict guard, without taking the booking lock."""
    stay_quote = await quote(store, property_id, check_in, check_out)
    blocked = await store.list_blocked_dates(property_id, check_in, check_out)
    bookings = await store.list_active_bookings(property_id, check_in, check_out)
    conflict = find_conflict(check_in, check_out, blocked, bookings)
    return AvailabilityCheck(
        check_in=stay_quote.check_in,
        check_out=stay_quote.check_out,
        available=conflict is None,
        conflict=conflict,
        quote=stay_quote,
    )


async def get_booking(store: BookingStore, booking_id: uuid.UUID) -> Booking:
    booking = await store.get_booking(booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


async def get_booking_by_session(store: BookingStore, session_id: str) -> Booking:
    """Booking a checkout session was opened for (the payment success page lookup)."""
    booking = await store.get_booking_by_payment_reference(session_id)
    if booking is None:
        raise NotFoundError("No booking for this checkout session")
    return booking


# ---------------------------------------------------------------------------
# Intake and conflict guard
# ---------------------------------------------------------------------------


async def guard_dates(store: BookingStore, property_id: uuid.UUID, stay: DateRange) -> None:
    """Raise ``ConflictError`` unless every night of ``stay`` is free.

    Explicit blocked dates are checked first, then holding bookings. Call
    only while holding the property lock so the answer stays true until
    the insert commits.
    """
    blocked = await store.list_blocked_dates(property_id, stay.start, stay.end)
    conflict = find_conflict(stay.start, stay.end, blocked, ())
    if conflict is None:
        bookings = await store.list_active_bookings(property_id, stay.start, stay.end)
        conflict = find_conflict(stay.start, stay.end, (), bookings)
    if conflict is not None:
        raise _conflict_error(conflict)


def _resolve_total(stay_quote: StayQuote, total_amount: Decimal | None) -> Decimal:
    if total_amount is None:
        return stay_quote.total
    submitted = Decimal(total_amount).quantize(CENTS)
    if submitted != stay_quote.total:
        raise ValidationError(
            f"Total {submitted} does not match the quoted price {stay_quote.total}; refresh and try again"
        )
    return submitted


async def _reserve(
    store: BookingStore,
    property_id: uuid.UUID,
    stay: DateRange,
    guest: GuestInfo,
    num_guests: int,
    total_amount: Decimal | None,
    special_requests: str | None,
) -> tuple[Booking, Property]:
    """Lock, validate, guard, insert, commit. One storage transaction."""
    prop = await store.get_property(property_id, for_update=True)
    if prop is None:
        raise NotFoundError("Property not found")
    validate_stay(prop, stay, num_guests)

    overrides = await store.list_price_overrides(property_id, stay.start, stay.end)
    total = _resolve_total(quote_stay(stay.start, stay.end, prop, overrides), total_amount)

    await guard_dates(store, property_id, stay)

    booking = Booking(
        id=uuid.uuid4(),
        property_id=property_id,
        confirmation_code=new_confirmation_code(),
        guest_first_name=guest.first_name,
        guest_last_name=guest.last_name,
        guest_email=guest.email,
        guest_phone=guest.phone,
        check_in=stay.start,
        check_out=stay.end,
        num_guests=num_guests,
        special_requests=special_requests or None,
        total_price=total,
        status=PENDING,
    )
    await store.add_booking(booking)
    await store.commit()
    logger.info(
        "Booking %s (%s) held for property %s: %s to %s",
        booking.id,
        booking.confirmation_code,
        property_id,
        stay.start,
        stay.end,
    )
    return booking, prop


async def _release_orphan(store: BookingStore, booking: Booking) -> None:
    """Cancel a hold whose checkout could not be opened."""
    try:
        await release_booking(store, booking, CANCELLED)
        await store.commit()
    except StorageError:
        logger.exception(
            "Could not cancel orphaned pending booking %s; the pending-hold sweep will release it",
            booking.id,
        )


async def _abandon_checkout(
    store: BookingStore, gateway: PaymentGateway, booking_id: uuid.UUID, session_id: str
) -> None:
    """Undo a hold whose checkout opened but could not be recorded.

    The guest never receives the redirect, so the session is expired and the
    hold cancelled; the reference is kept so a stray webhook still finds it.
    """
    try:
        await gateway.expire_payment_session(session_id)
    except PaymentSessionError:
        logger.exception("Could not expire checkout %s for booking %s", session_id, booking_id)
    try:
        booking = await store.get_booking(booking_id, for_update=True)
    except StorageError:
        logger.exception("Could not reload booking %s; the pending-hold sweep will release it", booking_id)
        return
    if booking is None or booking.status != PENDING:
        return
    booking.payment_reference = session_id
    await _release_orphan(store, booking)


async def submit_booking(
    store: BookingStore,
    gateway: PaymentGateway,
    property_id: uuid.UUID,
    check_in: date,
    check_out: date,
    guest: GuestInfo,
    num_guests: int = 1,
    total_amount: Decimal | None = None,
    special_requests: str | None = None,
    *,
    retry_attempts: int | None = None,
    payment_timeout: float | None = None,
    currency: str | None = None,
) -> BookingSubmission:
    """Hold the requested nights and open a checkout session for them.

    Raises:
        ValidationError: bad range, min-stay, guest count, or total mismatch.
        NotFoundError: unknown property.
        ConflictError: a requested night is blocked or booked.
        StorageError: the store failed on every attempt, or could not record the
            checkout; in that case the session is expired and the hold cancelled.
        PaymentSessionError: checkout could not be opened; the hold is cancelled.
    """
    stay = dates_in_range(check_in, check_out)
    attempts = max(1, retry_attempts if retry_attempts is not None else settings.storage_retry_attempts)

    for attempt in range(1, attempts + 1):
        try:
            booking, prop = await _reserve(
                store, property_id, stay, guest, num_guests, total_amount, special_requests
            )
            break
        except StorageError:
            await store.rollback()
            if attempt == attempts:
                raise
            logger.warning(
                "Storage error holding property %s (attempt %d/%d); retrying",
                property_id,
                attempt,
                attempts,
            )
        except BookingError:
            await store.rollback()
            raise

    timeout = payment_timeout if payment_timeout is not None else settings.payment_session_timeout_seconds
    try:
        session = await asyncio.wait_for(
            gateway.create_payment_session(
                amount=booking.total_price,
                currency=currency or settings.currency,
                customer_email=guest.email,
                metadata={"booking_id": str(booking.id), "confirmation_code": booking.confirmation_code},
                description=(
                    f"{prop.name}: {format_date(stay.start)} to {format_date(stay.end)} "
                    f"for {num_guests} guest(s)"
                ),
            ),
            timeout=timeout,
        )
    except TimeoutError as e:
        logger.warning("Checkout session for booking %s timed out after %ss", booking.id, timeout)
        await _release_orphan(store, booking)
        raise PaymentSessionError("Payment provider timed out; please try again") from e
    except PaymentSessionError:
        await _release_orphan(store, booking)
        raise

    booking_id = booking.id
    booking.payment_reference = session.session_id
    try:
        await store.save()
        await store.commit()
    except StorageError:
        # Rolled-back rows are expired; only the captured id is used from here on.
        await store.rollback()
        logger.warning("Could not record checkout %s for booking %s; abandoning it", session.session_id, booking_id)
        await _abandon_checkout(store, gateway, booking_id, session.session_id)
        raise
    return BookingSubmission(booking=booking, property=prop, payment=session)


async def cancel_booking(
    store: BookingStore,
    booking_id: uuid.UUID,
    *,
    by_host: bool = False,
    notifier: Notifier | None = None,
) -> Booking:
    """Cancel a booking. Guests may cancel pending holds; hosts may also cancel confirmed stays."""
    booking = await store.get_booking(booking_id, for_update=True)
    if booking is None:
        raise NotFoundError("Booking not found")
    if booking.status == CANCELLED:
        return booking

    allowed = booking.status == PENDING or (by_host and booking.status == CONFIRMED)
    if not allowed:
        raise ValidationError(f"Booking is {booking.status} and can no longer be cancelled")

    await release_booking(store, booking, CANCELLED)
    await store.commit()
    prop = await store.get_property(booking.property_id)
    await notify_safely(notifier, "booking_cancelled", booking, prop)
    return booking


# ---------------------------------------------------------------------------
# Host calendar management
# ---------------------------------------------------------------------------


async def create_property(store: BookingStore, **fields) -> Property:
    prop = await store.add_property(Property(id=uuid.uuid4(), **fields))
    await store.commit()
    logger.info("Created property %s (%s)", prop.id, prop.name)
    return prop


async def block_dates(
    store: BookingStore,
    property_id: uuid.UUID,
    days: Iterable[date],
    reason: str | None = None,
) -> int:
    """Block nights by hand. Taken under the property lock so intake sees it."""
    prop = await store.get_property(property_id, for_update=True)
    if prop is None:
        raise NotFoundError("Property not found")
    inserted = await store.add_blocked_dates(property_id, sorted(set(days)), reason=reason)
    await store.commit()
    logger.info("Blocked %d night(s) on property %s", inserted, property_id)
    return inserted


async def unblock_dates(store: BookingStore, property_id: uuid.UUID, days: Iterable[date]) -> int:
    await get_property(store, property_id)
    removed = await store.remove_blocked_dates(property_id, sorted(set(days)))
    await store.commit()
    logger.info("Unblocked %d night(s) on property %s", removed, property_id)
    return removed


async def set_price_overrides(
    store: BookingStore,
    property_id: uuid.UUID,
    prices: dict[date, Decimal | None],
) -> dict[date, Decimal]:
    await get_property(store, property_id)
    await store.set_price_overrides(property_id, prices)
    await store.commit()
    if not prices:
        return {}
    return await store.list_price_overrides(property_id, min(prices), max(prices) + timedelta(days=1))
