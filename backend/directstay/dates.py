"""Calendar-day helpers shared by availability, pricing, and materialization.

Everything here works on whole days. ``datetime`` values are cut down to their
calendar date before any comparison so a time of day can never push a night
across a boundary.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from directstay.errors import InvalidRangeError, ValidationError

DATE_FORMAT = "%Y-%m-%d"
ONE_DAY = timedelta(days=1)
CENTS = Decimal("0.01")

# date.weekday(): Friday=4, Saturday=5
WEEKEND_NIGHTS = frozenset({4, 5})


class Rated(Protocol):
    """Anything carrying nightly rates (the Property model, or a test double)."""

    base_price_per_night: Decimal
    weekend_price_per_night: Decimal | None


def to_day(value: date | datetime | str) -> date:
    """Normalize a date-like value to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date(value)
    raise TypeError(f"Cannot interpret {value!r} as a calendar date")


def parse_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` (a trailing ISO time part is ignored)."""
    try:
        return datetime.strptime(value.strip()[:10], DATE_FORMAT).date()
    except ValueError as e:
        raise ValidationError(f"Invalid date {value!r}; expected YYYY-MM-DD") from e


def format_date(value: date | datetime) -> str:
    return to_day(value).strftime(DATE_FORMAT)


@dataclass(frozen=True)
class DateRange:
    """Half-open range of nights ``[start, end)``.

    Iterating yields every night; the range can be iterated any number of
    times. ``len()`` is the number of nights.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", to_day(self.start))
        object.__setattr__(self, "end", to_day(self.end))
        if self.end <= self.start:
            raise InvalidRangeError(self.start, self.end)

    def __iter__(self) -> Iterator[date]:
        day = self.start
        while day < self.end:
            yield day
            day += ONE_DAY

    def __len__(self) -> int:
        return (self.end - self.start).days

    def __contains__(self, day: object) -> bool:
        if not isinstance(day, date):
            return False
        return self.start <= to_day(day) < self.end

    def overlaps(self, start: date, end: date) -> bool:
        """True when ``[start, end)`` shares at least one night with this range."""
        return to_day(start) < self.end and to_day(end) > self.start


def dates_in_range(start: date | datetime | str, end: date | datetime | str) -> DateRange:
    """Every night from ``start`` up to but excluding ``end``."""
    return DateRange(to_day(start), to_day(end))


def nights(start: date | datetime | str, end: date | datetime | str) -> int:
    """Number of nights between two dates. Raises ``InvalidRangeError`` if end <= start."""
    return len(dates_in_range(start, end))


def is_weekend(day: date) -> bool:
    """Friday and Saturday nights are priced at the weekend rate."""
    return to_day(day).weekday() in WEEKEND_NIGHTS


def price_for_date(
    day: date,
    rates: Rated,
    overrides: Mapping[date, Decimal] | None = None,
) -> Decimal:
    """Nightly price: exact-date override, else weekend rate, else base rate."""
    day = to_day(day)
    if overrides and day in overrides:
        return Decimal(overrides[day])
    if rates.weekend_price_per_night is not None and is_weekend(day):
        return Decimal(rates.weekend_price_per_night)
    return Decimal(rates.base_price_per_night)


@dataclass(frozen=True)
class StayQuote:
    """Price breakdown for a stay."""

    check_in: date
    check_out: date
    nightly: list[tuple[date, Decimal]] = field(default_factory=list)

    @property
    def nights(self) -> int:
        return len(self.nightly)

    @property
    def total(self) -> Decimal:
        return sum((price for _, price in self.nightly), Decimal("0")).quantize(CENTS, ROUND_HALF_UP)


def quote_stay(
    check_in: date,
    check_out: date,
    rates: Rated,
    overrides: Mapping[date, Decimal] | None = None,
) -> StayQuote:
    stay = dates_in_range(check_in, check_out)
    return StayQuote(
        check_in=stay.start,
        check_out=stay.end,
        nightly=[(day, price_for_date(day, rates, overrides)) for day in stay],
    )


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to integer cents for the payment provider."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), ROUND_HALF_UP))
