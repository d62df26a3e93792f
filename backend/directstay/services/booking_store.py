"""Booking store — every read and write the booking core makes.

One ``BookingStore`` wraps one ``AsyncSession`` (one request, one sweep run).
Driver failures surface as ``StorageError``; the overlap exclusion constraint
surfaces as ``ConflictError``. Callers never see SQLAlchemy exceptions.
"""

import logging
import uuid
from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from directstay.errors import ConflictError, StorageError
from directstay.models.blocked_date import BlockedDate
from directstay.models.booking import PENDING, RELEASED_STATUSES, Booking
from directstay.models.price_override import PriceOverride
from directstay.models.property import Property

logger = logging.getLogger(__name__)

OVERLAP_CONSTRAINT = "ex_bookings_no_overlap"


class BookingStore:
    """Row-level access to properties, bookings, blocked dates, and price overrides."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _execute(self, statement):
        try:
            return await self.db.execute(statement)
        except SQLAlchemyError as e:
            logger.error("Booking store query failed: %s", e)
            raise StorageError("Booking store is unavailable") from e

    async def _flush(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            if OVERLAP_CONSTRAINT in str(e.orig):
                raise ConflictError("Selected dates are not available", source="booking") from e
            raise StorageError("Booking store rejected the write") from e
        except SQLAlchemyError as e:
            logger.error("Booking store flush failed: %s", e)
            raise StorageError("Booking store is unavailable") from e

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            if OVERLAP_CONSTRAINT in str(e.orig):
                raise ConflictError("Selected dates are not available", source="booking") from e
            raise StorageError("Booking store rejected the write") from e
        except SQLAlchemyError as e:
            logger.error("Booking store commit failed: %s", e)
            raise StorageError("Booking store is unavailable") from e

    async def rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            raise StorageError("Booking store is unavailable") from e

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    async def get_property(self, property_id: uuid.UUID, *, for_update: bool = False) -> Property | None:
        """Fetch a property. ``for_update`` takes the per-property booking lock.

        The lock is the row lock on the property, held until commit/rollback;
        every writer that must see a consistent calendar takes it first.
        """
        query = select(Property).where(Property.id == property_id)
        if for_update:
            query = query.with_for_update()
        result = await self._execute(query)
        return result.scalar_one_or_none()

    async def add_property(self, prop: Property) -> Property:
        self.db.add(prop)
        await self._flush()
        try:
            await self.db.refresh(prop)
        except SQLAlchemyError as e:
            raise StorageError("Booking store is unavailable") from e
        return prop

    # ------------------------------------------------------------------
    # Blocked dates
    # ------------------------------------------------------------------

    async def list_blocked_dates(
        self,
        property_id: uuid.UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[BlockedDate]:
        """Blocked nights for a property, optionally limited to ``[start, end)``."""
        query = select(BlockedDate).where(BlockedDate.property_id == property_id)
        if start is not None:
            query = query.where(BlockedDate.date >= start)
        if end is not None:
            query = query.where(BlockedDate.date < end)
        result = await self._execute(query.order_by(BlockedDate.date))
        return list(result.scalars().all())

    async def add_blocked_dates(
        self,
        property_id: uuid.UUID,
        days: Iterable[date],
        reason: str | None = None,
        event_id: uuid.UUID | None = None,
    ) -> int:
        """Insert one row per night; nights already blocked are left as they are.

        Returns the number of rows actually inserted, so a replay inserts zero.
        """
        rows = [
            {"id": uuid.uuid4(), "property_id": property_id, "date": day, "reason": reason, "event_id": event_id}
            for day in days
        ]
        if not rows:
            return 0
        statement = (
            pg_insert(BlockedDate)
            .values(rows)
            .on_conflict_do_nothing(index_elements=[BlockedDate.property_id, BlockedDate.date])
        )
        result = await self._execute(statement)
        return result.rowcount or 0

    async def remove_blocked_dates(self, property_id: uuid.UUID, days: Iterable[date]) -> int:
        """Remove host blocks. Nights materialized from a booking are not touched."""
        statement = delete(BlockedDate).where(
            BlockedDate.property_id == property_id,
            BlockedDate.date.in_(list(days)),
            BlockedDate.event_id.is_(None),
        )
        result = await self._execute(statement)
        return result.rowcount or 0

    async def remove_blocked_event(self, property_id: uuid.UUID, event_id: uuid.UUID) -> int:
        """Remove every night materialized under one event id."""
        statement = delete(BlockedDate).where(
            BlockedDate.property_id == property_id,
            BlockedDate.event_id == event_id,
        )
        result = await self._execute(statement)
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    async def list_price_overrides(
        self,
        property_id: uuid.UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> dict[date, Decimal]:
        query = select(PriceOverride).where(PriceOverride.property_id == property_id)
        if start is not None:
            query = query.where(PriceOverride.date >= start)
        if end is not None:
            query = query.where(PriceOverride.date < end)
        result = await self._execute(query)
        return {row.date: row.price_per_night for row in result.scalars().all()}

    async def set_price_overrides(self, property_id: uuid.UUID, prices: dict[date, Decimal | None]) -> None:
        """Upsert overrides; a ``None`` price removes the override for that date."""
        cleared = [day for day, price in prices.items() if price is None]
        if cleared:
            await self._execute(
                delete(PriceOverride).where(
                    PriceOverride.property_id == property_id,
                    PriceOverride.date.in_(cleared),
                )
            )
        rows = [
            {"id": uuid.uuid4(), "property_id": property_id, "date": day, "price_per_night": price}
            for day, price in prices.items()
            if price is not None
        ]
        if rows:
            statement = pg_insert(PriceOverride).values(rows)
            statement = statement.on_conflict_do_update(
                index_elements=[PriceOverride.property_id, PriceOverride.date],
                set_={"price_per_night": statement.excluded.price_per_night},
            )
            await self._execute(statement)

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    async def list_active_bookings(
        self,
        property_id: uuid.UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[Booking]:
        """Bookings still holding nights, optionally only those overlapping ``[start, end)``."""
        query = select(Booking).where(
            Booking.property_id == property_id,
            Booking.status.not_in(RELEASED_STATUSES),
        )
        if end is not None:
            query = query.where(Booking.check_in < end)
        if start is not None:
            query = query.where(Booking.check_out > start)
        result = await self._execute(query.order_by(Booking.check_in))
        return list(result.scalars().all())

    async def add_booking(self, booking: Booking) -> Booking:
        self.db.add(booking)
        await self._flush()
        return booking

    async def get_booking(self, booking_id: uuid.UUID, *, for_update: bool = False) -> Booking | None:
        query = select(Booking).where(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update()
        result = await self._execute(query)
        return result.scalar_one_or_none()

    async def get_booking_by_payment_reference(
        self, payment_reference: str, *, for_update: bool = False
    ) -> Booking | None:
        query = select(Booking).where(Booking.payment_reference == payment_reference)
        if for_update:
            query = query.with_for_update()
        result = await self._execute(query)
        return result.scalars().first()

    async def list_stale_pending(self, older_than: timedelta) -> list[Booking]:
        """Pending bookings created more than ``older_than`` ago, locked for update."""
        query = (
            select(Booking)
            .where(Booking.status == PENDING, Booking.created_at < func.now() - older_than)
            .order_by(Booking.created_at)
            .with_for_update(skip_locked=True)
        )
        result = await self._execute(query)
        return list(result.scalars().all())

    async def save(self) -> None:
        """Flush pending attribute changes on loaded rows."""
        await self._flush()
