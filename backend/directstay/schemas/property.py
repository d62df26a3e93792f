"""Pydantic v2 request/response schemas for property endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PropertyCreate(BaseModel):
    """Schema for creating a new property."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    address: str | None = Field(None, max_length=255)
    max_guests: int | None = Field(None, ge=1)
    base_price_per_night: Decimal = Field(..., ge=0)
    weekend_price_per_night: Decimal | None = Field(None, ge=0)
    min_stay_nights: int = Field(1, ge=1)
    host_name: str | None = Field(None, max_length=255)
    host_email: str | None = Field(None, max_length=255)


class BlockedDatesRequest(BaseModel):
    """Nights a host blocks (or unblocks) by hand."""

    dates: list[date] = Field(..., min_length=1)
    reason: str | None = Field(None, max_length=255)


class PriceOverridesRequest(BaseModel):
    """Per-date nightly prices; ``null`` removes an override."""

    prices: dict[date, Decimal | None] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PropertyResponse(BaseModel):
    """Public property information returned from the API."""

    id: uuid.UUID
    name: str
    description: str | None = None
    address: str | None = None
    max_guests: int | None = None
    base_price_per_night: Decimal
    weekend_price_per_night: Decimal | None = None
    min_stay_nights: int

    model_config = ConfigDict(from_attributes=True)


class PriceOverridesResponse(BaseModel):
    property_id: uuid.UUID
    prices: dict[date, Decimal]
