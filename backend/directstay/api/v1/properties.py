"""Public property routes — listing details, availability, quotes, calendar."""

import uuid
from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query

from directstay.api.deps import get_booking_store
from directstay.config import settings
from directstay.dates import dates_in_range
from directstay.range_picker import RangeSelection, month_grid
from directstay.schemas.availability import (
    AvailabilityResponse,
    CalendarDayResponse,
    CalendarResponse,
    NightlyPrice,
    QuoteResponse,
    UnavailableDatesResponse,
    UnavailableNightResponse,
)
from directstay.schemas.property import PropertyResponse
from directstay.services import booking_service
from directstay.services.booking_store import BookingStore

router = APIRouter(prefix="/api/v1/properties", tags=["properties"])


def _quote_response(property_id: uuid.UUID, stay_quote) -> QuoteResponse:
    return QuoteResponse(
        property_id=property_id,
        check_in=stay_quote.check_in,
        check_out=stay_quote.check_out,
        nights=stay_quote.nights,
        nightly=[NightlyPrice(date=day, price=price) for day, price in stay_quote.nightly],
        total=stay_quote.total,
    )


@router.get(
    "/{property_id}",
    response_model=PropertyResponse,
    summary="Get property details",
)
async def get_property(
    property_id: uuid.UUID,
    store: BookingStore = Depends(get_booking_store),
) -> PropertyResponse:
    prop = await booking_service.get_property(store, property_id)
    return PropertyResponse.model_validate(prop)


@router.get(
    "/{property_id}/unavailable-dates",
    response_model=UnavailableDatesResponse,
    summary="List unavailable nights (blocked or booked)",
)
async def list_unavailable_dates(
    property_id: uuid.UUID,
    start: date | None = Query(None, description="First night of the window (default: today)"),
    end: date | None = Query(None, description="Night after the window (default: start + availability window)"),
    store: BookingStore = Depends(get_booking_store),
) -> UnavailableDatesResponse:
    """Merge explicit blocked dates and nights held by pending or confirmed bookings."""
    start = start or date.today()
    end = end or start + timedelta(days=settings.availability_window_days)
    nights = await booking_service.get_unavailable_dates(store, property_id, start, end)
    return UnavailableDatesResponse(
        property_id=property_id,
        start=start,
        end=end,
        dates=[UnavailableNightResponse.model_validate(night) for night in nights],
    )


@router.get(
    "/{property_id}/availability",
    response_model=AvailabilityResponse,
    summary="Check whether a stay can be booked",
)
async def check_availability(
    property_id: uuid.UUID,
    check_in: date = Query(...),
    check_out: date = Query(...),
    store: BookingStore = Depends(get_booking_store),
) -> AvailabilityResponse:
    result = await booking_service.check_availability(store, property_id, check_in, check_out)
    return AvailabilityResponse(
        property_id=property_id,
        check_in=result.check_in,
        check_out=result.check_out,
        available=result.available,
        conflict_source=result.conflict.source if result.conflict else None,
        conflicting_dates=result.conflict.dates if result.conflict else [],
        quote=_quote_response(property_id, result.quote),
    )


@router.get(
    "/{property_id}/quote",
    response_model=QuoteResponse,
    summary="Price a stay",
)
async def get_quote(
    property_id: uuid.UUID,
    check_in: date = Query(...),
    check_out: date = Query(...),
    store: BookingStore = Depends(get_booking_store),
) -> QuoteResponse:
    stay_quote = await booking_service.quote(store, property_id, check_in, check_out)
    return _quote_response(property_id, stay_quote)


@router.get(
    "/{property_id}/calendar",
    response_model=CalendarResponse,
    summary="Month calendar grid with an optional selection",
)
async def get_calendar(
    property_id: uuid.UUID,
    year: int | None = Query(None, ge=1970, le=9999),
    month: int | None = Query(None, ge=1, le=12),
    check_in: date | None = Query(None, description="Selected check-in"),
    check_out: date | None = Query(None, description="Selected check-out"),
    store: BookingStore = Depends(get_booking_store),
) -> CalendarResponse:
    """Render one month for the date picker.

    The optional ``check_in``/``check_out`` are replayed through the range
    selection so the client gets the same accept/reject decision the
    booking form will.
    """
    await booking_service.get_property(store, property_id)
    today = date.today()
    year = year or today.year
    month = month or today.month
    min_date = today
    max_date = today + timedelta(days=settings.availability_window_days)

    grid_start = date(year, month, 1) - timedelta(days=7)
    grid_end = date(year, month, 1) + timedelta(days=49)
    window = dates_in_range(
        min(grid_start, check_in or grid_start),
        max(grid_end, (check_out or grid_end) + timedelta(days=1)),
    )
    snapshot = await booking_service.load_snapshot(store, property_id, window.start, window.end)

    selection = RangeSelection(snapshot, min_date=min_date, max_date=max_date)
    if check_in is not None:
        selection.select(check_in)
        if check_out is not None:
            selection.select(check_out)

    days = [
        CalendarDayResponse(
            date=cell.date,
            in_current_month=cell.in_current_month,
            available=cell.available,
            selected=cell.date in (selection.start, selection.end),
            in_range=selection.is_in_range(cell.date),
        )
        for cell in month_grid(year, month, snapshot, min_date=min_date, max_date=max_date)
    ]
    return CalendarResponse(
        property_id=property_id,
        year=year,
        month=month,
        selection_state=selection.state,
        check_in=selection.start,
        check_out=selection.end,
        days=days,
    )
