"""Pydantic v2 response schemas for availability, quotes, and the calendar."""

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class UnavailableNightResponse(BaseModel):
    date: date
    source: str  # blocked, booking
    reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UnavailableDatesResponse(BaseModel):
    """Merged blocked and booked nights for a window."""

    property_id: uuid.UUID
    start: date
    end: date
    dates: list[UnavailableNightResponse]


class NightlyPrice(BaseModel):
    date: date
    price: Decimal


class QuoteResponse(BaseModel):
    """Price breakdown for a stay."""

    property_id: uuid.UUID
    check_in: date
    check_out: date
    nights: int
    nightly: list[NightlyPrice]
    total: Decimal


class AvailabilityResponse(BaseModel):
    """Whether a stay can be booked right now, and why not if it can't."""

    property_id: uuid.UUID
    check_in: date
    check_out: date
    available: bool
    conflict_source: str | None = None
    conflicting_dates: list[date] = []
    quote: QuoteResponse


class CalendarDayResponse(BaseModel):
    date: date
    in_current_month: bool
    available: bool
    selected: bool = False
    in_range: bool = False


class CalendarResponse(BaseModel):
    """6x7 month grid plus the state of an optional check-in/check-out selection."""

    property_id: uuid.UUID
    year: int
    month: int
    selection_state: str
    check_in: date | None = None
    check_out: date | None = None
    days: list[CalendarDayResponse]
