"""Calendar grid and check-in/check-out selection state.

This is the presentation side of the availability oracle: it owns no
availability rules of its own, every decision goes through an
``AvailabilitySnapshot``. Refreshing is explicit (``refresh``); the caller
decides when (page load, tab focus, after a failed booking).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from directstay.availability import AvailabilitySnapshot
from directstay.dates import DateRange, to_day

GRID_CELLS = 42  # 6 weeks of 7 days, Sunday first

EMPTY = "empty"
START_SELECTED = "start_selected"
COMPLETE = "complete"


@dataclass(frozen=True)
class CalendarDay:
    date: date
    in_current_month: bool
    available: bool


def _within_bounds(day: date, min_date: date | None, max_date: date | None) -> bool:
    if min_date is not None and day < min_date:
        return False
    if max_date is not None and day > max_date:
        return False
    return True


def month_grid(
    year: int,
    month: int,
    snapshot: AvailabilitySnapshot,
    min_date: date | None = None,
    max_date: date | None = None,
) -> list[CalendarDay]:
    """Build the 6x7 grid for a month, padded with neighbouring-month days."""
    first = date(year, month, 1)
    # date.weekday(): Monday=0 .. Sunday=6; grid columns start on Sunday
    lead = (first.weekday() + 1) % 7
    start = first - timedelta(days=lead)

    cells: list[CalendarDay] = []
    for offset in range(GRID_CELLS):
        day = start + timedelta(days=offset)
        cells.append(
            CalendarDay(
                date=day,
                in_current_month=day.month == month,
                available=_within_bounds(day, min_date, max_date) and snapshot.is_date_available(day),
            )
        )
    return cells


class RangeSelection:
    """Check-in / check-out picker: ``empty -> start_selected -> complete``.

    The check-in must be an available night. A check-out completes the
    selection when every night in ``[check_in, check_out)`` is available; the
    check-out day itself may be taken, since nobody sleeps there.
    """

    def __init__(
        self,
        snapshot: AvailabilitySnapshot,
        min_date: date | None = None,
        max_date: date | None = None,
    ) -> None:
        self.snapshot = snapshot
        self.min_date = min_date
        self.max_date = max_date
        self.start: date | None = None
        self.end: date | None = None
        self.hover: date | None = None

    @property
    def state(self) -> str:
        if self.start is None:
            return EMPTY
        if self.end is None:
            return START_SELECTED
        return COMPLETE

    def can_start_on(self, day: date) -> bool:
        return _within_bounds(day, self.min_date, self.max_date) and self.snapshot.is_date_available(day)

    def can_end_on(self, day: date) -> bool:
        if self.start is None or day <= self.start:
            return False
        # Check-out may fall on max_date + 1 (the last bookable night is max_date).
        if self.max_date is not None and day > self.max_date + timedelta(days=1):
            return False
        return self.snapshot.is_range_available(self.start, day)

    def select(self, day: date) -> str:
        """Apply a click on ``day`` and return the new state."""
        day = to_day(day)
        if self.state == START_SELECTED and self.can_end_on(day):
            self.end = day
            self.hover = None
        elif self.can_start_on(day):
            self.start = day
            self.end = None
        return self.state

    def preview(self, day: date) -> set[date]:
        """Nights highlighted while hovering ``day`` with only a check-in chosen."""
        day = to_day(day)
        self.hover = day if self.state == START_SELECTED else None
        if self.hover is None or self.hover <= self.start:
            return set()
        return set(DateRange(self.start, self.hover))

    def is_in_range(self, day: date) -> bool:
        """Strictly between check-in and check-out (or the hovered day)."""
        if self.start is None:
            return False
        end = self.end or self.hover
        if end is None:
            return False
        return self.start < to_day(day) < end

    @property
    def selected_range(self) -> DateRange | None:
        if self.start is None or self.end is None:
            return None
        return DateRange(self.start, self.end)

    def clear(self) -> None:
        self.start = None
        self.end = None
        self.hover = None

    def refresh(self, snapshot: AvailabilitySnapshot) -> None:
        """Swap in fresh availability; drop a selection that is no longer bookable."""
        self.snapshot = snapshot
        if self.start is None:
            return
        if not self.can_start_on(self.start) or (self.end is not None and not self.can_end_on(self.end)):
            self.clear()
