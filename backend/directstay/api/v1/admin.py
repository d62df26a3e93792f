"""Host calendar management routes — guarded by the ``X-Admin-Key`` header."""

import uuid
from datetime import timedelta

from fastapi import APIRouter, Depends, Query, status

from directstay.api.deps import get_booking_store, get_notifier, get_payment_gateway, require_admin
from directstay.payments.stripe_client import MIN_SESSION_MINUTES, PaymentGateway
from directstay.schemas.booking import BookingResponse, StaleHoldsResponse
from directstay.schemas.common import CountResponse
from directstay.schemas.property import (
    BlockedDatesRequest,
    PriceOverridesRequest,
    PriceOverridesResponse,
    PropertyCreate,
    PropertyResponse,
)
from directstay.services import booking_service
from directstay.services.booking_store import BookingStore
from directstay.services.notifications import Notifier
from directstay.services.reconciler import expire_stale_pending

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


@router.post(
    "/properties",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a property",
)
async def create_property(
    body: PropertyCreate,
    store: BookingStore = Depends(get_booking_store),
) -> PropertyResponse:
    prop = await booking_service.create_property(store, **body.model_dump())
    return PropertyResponse.model_validate(prop)


@router.post(
    "/properties/{property_id}/blocked-dates",
    response_model=CountResponse,
    summary="Block nights",
)
async def block_dates(
    property_id: uuid.UUID,
    body: BlockedDatesRequest,
    store: BookingStore = Depends(get_booking_store),
) -> CountResponse:
    """Block nights by hand. Already-blocked nights are skipped."""
    count = await booking_service.block_dates(store, property_id, body.dates, reason=body.reason)
    return CountResponse(count=count)


@router.delete(
    "/properties/{property_id}/blocked-dates",
    response_model=CountResponse,
    summary="Unblock nights",
)
async def unblock_dates(
    property_id: uuid.UUID,
    body: BlockedDatesRequest,
    store: BookingStore = Depends(get_booking_store),
) -> CountResponse:
    """Remove host blocks. Nights held by confirmed bookings stay blocked."""
    count = await booking_service.unblock_dates(store, property_id, body.dates)
    return CountResponse(count=count)


@router.put(
    "/properties/{property_id}/price-overrides",
    response_model=PriceOverridesResponse,
    summary="Set per-date prices",
)
async def set_price_overrides(
    property_id: uuid.UUID,
    body: PriceOverridesRequest,
    store: BookingStore = Depends(get_booking_store),
) -> PriceOverridesResponse:
    prices = await booking_service.set_price_overrides(store, property_id, body.prices)
    return PriceOverridesResponse(property_id=property_id, prices=prices)


@router.post(
    "/bookings/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking as the host",
)
async def cancel_booking(
    booking_id: uuid.UUID,
    store: BookingStore = Depends(get_booking_store),
    notifier: Notifier = Depends(get_notifier),
) -> BookingResponse:
    """Cancel a pending or confirmed booking and reopen its nights. No refund is issued."""
    booking = await booking_service.cancel_booking(store, booking_id, by_host=True, notifier=notifier)
    return BookingResponse.model_validate(booking)


@router.post(
    "/holds/expire",
    response_model=StaleHoldsResponse,
    summary="Release stale pending bookings",
)
async def expire_holds(
    older_than_minutes: int | None = Query(
        None,
        ge=MIN_SESSION_MINUTES,
        description="Default and floor: PENDING_HOLD_MINUTES + PENDING_HOLD_GRACE_MINUTES",
    ),
    store: BookingStore = Depends(get_booking_store),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> StaleHoldsResponse:
    older_than = timedelta(minutes=older_than_minutes) if older_than_minutes else None
    expired = await expire_stale_pending(store, older_than, gateway)
    return StaleHoldsResponse(expired_booking_ids=expired)
