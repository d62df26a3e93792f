"""Availability oracle — the single answer to "can these nights be booked?".

A night is available iff it is not an explicit blocked date for the property
and not inside ``[check_in, check_out)`` of any booking that still holds its
nights. The calendar, the quote endpoint, and the booking conflict guard all
call into this module; none of them re-implement the rule.

Inputs are whatever the caller already loaded for ONE property:

- blocked dates: ``BlockedDate`` rows (anything with a ``.date``) or bare dates
- bookings: ``Booking`` rows (anything with ``check_in``, ``check_out``, ``status``)

No I/O, no clock, no timers.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Protocol

from directstay.dates import dates_in_range, to_day
from directstay.models.booking import RELEASED_STATUSES

SOURCE_BLOCKED = "blocked"
SOURCE_BOOKING = "booking"


class BlockedLike(Protocol):
    date: date


class BookingLike(Protocol):
    check_in: date
    check_out: date
    status: str


BlockedInput = BlockedLike | date


def _blocked_day(item: BlockedInput) -> date:
    if isinstance(item, date):
        return to_day(item)
    return to_day(item.date)


def holds_nights(booking: BookingLike) -> bool:
    """Whether the booking still occupies its nights (pending or confirmed)."""
    return booking.status not in RELEASED_STATUSES


def booking_covers(booking: BookingLike, day: date) -> bool:
    """Half-open coverage: the check-out day itself is never covered."""
    return holds_nights(booking) and to_day(booking.check_in) <= day < to_day(booking.check_out)


def is_date_available(
    day: date,
    blocked_dates: Iterable[BlockedInput],
    bookings: Iterable[BookingLike],
) -> bool:
    day = to_day(day)
    if any(_blocked_day(item) == day for item in blocked_dates):
        return False
    return not any(booking_covers(booking, day) for booking in bookings)


def is_range_available(
    start: date,
    end: date,
    blocked_dates: Iterable[BlockedInput],
    bookings: Iterable[BookingLike],
) -> bool:
    """True iff every night in ``[start, end)`` is available. Stops at the first taken night."""
    return AvailabilitySnapshot.build(blocked_dates, bookings).is_range_available(start, end)


@dataclass(frozen=True)
class Conflict:
    """First reason a range cannot be booked."""

    source: str  # SOURCE_BLOCKED or SOURCE_BOOKING
    dates: list[date]
    reason: str | None = None


def find_conflict(
    start: date,
    end: date,
    blocked_dates: Iterable[BlockedInput],
    bookings: Iterable[BookingLike],
) -> Conflict | None:
    """Explain why ``[start, end)`` is unavailable, or return ``None``.

    Explicit blocked dates are checked before bookings, matching the order
    the conflict guard reports them in.
    """
    stay = dates_in_range(start, end)
    blocked = [item for item in blocked_dates if _blocked_day(item) in stay]
    if blocked:
        days = sorted({_blocked_day(item) for item in blocked})
        reasons = [getattr(item, "reason", None) for item in blocked]
        reason = next((r for r in reasons if r), None)
        return Conflict(source=SOURCE_BLOCKED, dates=days, reason=reason)

    taken = sorted({day for booking in bookings for day in stay if booking_covers(booking, day)})
    if taken:
        return Conflict(source=SOURCE_BOOKING, dates=taken)
    return None


@dataclass(frozen=True)
class UnavailableNight:
    date: date
    source: str
    reason: str | None = None


class AvailabilitySnapshot:
    """Availability of one property, indexed for repeated per-day lookups.

    Built from the same inputs as the module functions; the calendar grid asks
    about dozens of days so the inputs are indexed once.
    """

    def __init__(self, blocked: dict[date, str | None], booked: set[date]) -> None:
        self._blocked = blocked
        self._booked = booked

    @classmethod
    def build(
        cls,
        blocked_dates: Iterable[BlockedInput] = (),
        bookings: Iterable[BookingLike] = (),
    ) -> AvailabilitySnapshot:
        blocked: dict[date, str | None] = {}
        for item in blocked_dates:
            day = _blocked_day(item)
            blocked.setdefault(day, getattr(item, "reason", None))

        booked: set[date] = set()
        for booking in bookings:
            if holds_nights(booking) and to_day(booking.check_out) > to_day(booking.check_in):
                booked.update(dates_in_range(booking.check_in, booking.check_out))
        return cls(blocked, booked)

    def is_date_available(self, day: date) -> bool:
        day = to_day(day)
        return day not in self._blocked and day not in self._booked

    def first_unavailable(self, start: date, end: date) -> date | None:
        for day in dates_in_range(start, end):
            if not self.is_date_available(day):
                return day
        return None

    def is_range_available(self, start: date, end: date) -> bool:
        return self.first_unavailable(start, end) is None

    def unavailable_dates(self, start: date, end: date) -> list[UnavailableNight]:
        """Every unavailable night in ``[start, end)``; a blocked night wins over a booked one."""
        nights: list[UnavailableNight] = []
        for day in dates_in_range(start, end):
            if day in self._blocked:
                nights.append(UnavailableNight(day, SOURCE_BLOCKED, self._blocked[day]))
            elif day in self._booked:
                nights.append(UnavailableNight(day, SOURCE_BOOKING))
        return nights
