"""Pydantic v2 request/response schemas for booking endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    """Guest booking form submission."""

    property_id: uuid.UUID
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=3, max_length=50)
    check_in: date
    check_out: date
    guests: int = Field(1, ge=1)
    total_price: Decimal | None = Field(None, ge=0)
    special_requests: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def check_dates(self) -> "BookingCreate":
        """Validate that check_out is strictly after check_in and not in the past."""
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        if self.check_in < date.today():
            raise ValueError("check_in cannot be in the past")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BookingResponse(BaseModel):
    """Booking as shown on the guest's status page."""

    id: uuid.UUID
    property_id: uuid.UUID
    confirmation_code: str
    guest_first_name: str
    guest_last_name: str
    guest_email: str
    check_in: date
    check_out: date
    nights: int
    num_guests: int
    total_price: Decimal
    special_requests: str | None = None
    status: str
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BookingSubmissionResponse(BaseModel):
    """Pending hold plus the hosted checkout the guest must complete."""

    booking: BookingResponse
    redirect_url: str
    payment_session_id: str


class StaleHoldsResponse(BaseModel):
    expired_booking_ids: list[uuid.UUID]
