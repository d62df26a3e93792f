"""Guest booking routes — submit a stay, check its status, cancel a pending hold.

Errors raised by the booking service (validation, conflicts, storage and
payment failures) are turned into responses by the handlers in
``directstay.main``.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status

from directstay.api.deps import get_booking_store, get_notifier, get_payment_gateway
from directstay.payments.stripe_client import PaymentGateway
from directstay.schemas.booking import BookingCreate, BookingResponse, BookingSubmissionResponse
from directstay.services import booking_service
from directstay.services.booking_service import GuestInfo
from directstay.services.booking_store import BookingStore
from directstay.services.notifications import Notifier

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


@router.post(
    "",
    response_model=BookingSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a booking and start checkout",
)
async def create_booking(
    body: BookingCreate,
    store: BookingStore = Depends(get_booking_store),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> BookingSubmissionResponse:
    """Hold the requested nights as a pending booking and open a checkout session.

    The client redirects the guest to ``redirect_url``; the booking becomes
    confirmed when the payment webhook arrives.
    """
    submission = await booking_service.submit_booking(
        store,
        gateway,
        property_id=body.property_id,
        check_in=body.check_in,
        check_out=body.check_out,
        guest=GuestInfo(
            first_name=body.first_name,
            last_name=body.last_name,
            email=str(body.email),
            phone=body.phone,
        ),
        num_guests=body.guests,
        total_amount=body.total_price,
        special_requests=body.special_requests,
    )
    return BookingSubmissionResponse(
        booking=BookingResponse.model_validate(submission.booking),
        redirect_url=submission.payment.redirect_url,
        payment_session_id=submission.payment.session_id,
    )


@router.get(
    "/by-session/{session_id}",
    response_model=BookingResponse,
    summary="Get booking status by checkout session",
)
async def get_booking_by_session(
    session_id: str,
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    """Resolve the ``session_id`` the payment provider appends to the success URL.

    The status is still ``pending`` until the payment webhook has been applied.
    """
    booking = await booking_service.get_booking_by_session(store, session_id)
    return BookingResponse.model_validate(booking)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking status",
)
async def get_booking(
    booking_id: uuid.UUID,
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    booking = await booking_service.get_booking(store, booking_id)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a pending booking",
)
async def cancel_booking(
    booking_id: uuid.UUID,
    store: BookingStore = Depends(get_booking_store),
    notifier: Notifier = Depends(get_notifier),
) -> BookingResponse:
    """Guests can only cancel while payment is still pending."""
    booking = await booking_service.cancel_booking(store, booking_id, notifier=notifier)
    return BookingResponse.model_validate(booking)
