"""Shared test configuration and fixtures.

Most tests run the booking core against ``FakeBookingStore``, an in-memory
stand-in for ``BookingStore`` that keeps the same locking contract: the
property row lock taken by ``get_property(for_update=True)`` is held until
``commit()`` or ``rollback()``. API tests swap it in through
``app.dependency_overrides`` so no database is needed.

Tests that exercise the real SQL (``test_services/test_booking_store_pg.py``)
use a transactional rollback strategy per test against the
``directstay_test`` database and are skipped when it is unreachable.
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from directstay.api.deps import get_booking_store, get_notifier, get_payment_gateway
from directstay.config import settings
from directstay.database import Base
from directstay.errors import PaymentSessionError, StorageError
from directstay.main import app
from directstay.models.blocked_date import BlockedDate
from directstay.models.booking import CONFIRMED, PENDING, RELEASED_STATUSES, Booking
from directstay.models.property import Property
from directstay.payments.stripe_client import PaymentSession

ADMIN_KEY = "test-admin-key"


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeDatabase:
    """State shared by every ``FakeBookingStore`` of one test."""

    def __init__(self) -> None:
        self.properties: dict[uuid.UUID, Property] = {}
        self.bookings: dict[uuid.UUID, Booking] = {}
        self.blocked: dict[tuple[uuid.UUID, date], BlockedDate] = {}
        self.overrides: dict[tuple[uuid.UUID, date], Decimal] = {}
        self.locks: dict[uuid.UUID, asyncio.Lock] = {}
        self.failures: dict[str, int] = {}

    def fail_next(self, operation: str, times: int = 1) -> None:
        """Make the next ``times`` calls of a store method raise ``StorageError``."""
        self.failures[operation] = times

    def lock_for(self, property_id: uuid.UUID) -> asyncio.Lock:
        return self.locks.setdefault(property_id, asyncio.Lock())


class FakeBookingStore:
    """``BookingStore`` over a ``FakeDatabase``; one instance per request."""

    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self._held: set[uuid.UUID] = set()
        self._staged: list[Booking] = []

    async def _io(self, operation: str) -> None:
        # Yield so concurrent tasks interleave the way they would on a real driver.
        await asyncio.sleep(0)
        remaining = self.db.failures.get(operation, 0)
        if remaining:
            self.db.failures[operation] = remaining - 1
            raise StorageError("Booking store is unavailable")

    def _release_locks(self) -> None:
        for property_id in self._held:
            self.db.lock_for(property_id).release()
        self._held.clear()

    async def commit(self) -> None:
        try:
            await self._io("commit")
        except StorageError:
            self._staged.clear()
            self._release_locks()
            raise
        for booking in self._staged:
            self.db.bookings[booking.id] = booking
        self._staged.clear()
        self._release_locks()

    async def rollback(self) -> None:
        self._staged.clear()
        self._release_locks()

    async def get_property(self, property_id: uuid.UUID, *, for_update: bool = False) -> Property | None:
        await self._io("get_property")
        if for_update and property_id not in self._held:
            await self.db.lock_for(property_id).acquire()
            self._held.add(property_id)
        return self.db.properties.get(property_id)

    async def add_property(self, prop: Property) -> Property:
        await self._io("add_property")
        if prop.min_stay_nights is None:
            prop.min_stay_nights = 1
        self.db.properties[prop.id] = prop
        return prop

    async def list_blocked_dates(self, property_id, start=None, end=None) -> list[BlockedDate]:
        await self._io("list_blocked_dates")
        rows = [
            row
            for (pid, day), row in self.db.blocked.items()
            if pid == property_id and (start is None or day >= start) and (end is None or day < end)
        ]
        return sorted(rows, key=lambda row: row.date)

    async def add_blocked_dates(self, property_id, days, reason=None, event_id=None) -> int:
        await self._io("add_blocked_dates")
        inserted = 0
        for day in days:
            if (property_id, day) in self.db.blocked:
                continue
            self.db.blocked[(property_id, day)] = BlockedDate(
                id=uuid.uuid4(), property_id=property_id, date=day, reason=reason, event_id=event_id
            )
            inserted += 1
        return inserted

    async def remove_blocked_dates(self, property_id, days) -> int:
        await self._io("remove_blocked_dates")
        removed = 0
        for day in days:
            row = self.db.blocked.get((property_id, day))
            if row is not None and row.event_id is None:
                del self.db.blocked[(property_id, day)]
                removed += 1
        return removed

    async def remove_blocked_event(self, property_id, event_id) -> int:
        await self._io("remove_blocked_event")
        keys = [key for key, row in self.db.blocked.items() if key[0] == property_id and row.event_id == event_id]
        for key in keys:
            del self.db.blocked[key]
        return len(keys)

    async def list_price_overrides(self, property_id, start=None, end=None) -> dict[date, Decimal]:
        await self._io("list_price_overrides")
        return {
            day: price
            for (pid, day), price in self.db.overrides.items()
            if pid == property_id and (start is None or day >= start) and (end is None or day < end)
        }

    async def set_price_overrides(self, property_id, prices) -> None:
        await self._io("set_price_overrides")
        for day, price in prices.items():
            if price is None:
                self.db.overrides.pop((property_id, day), None)
            else:
                self.db.overrides[(property_id, day)] = Decimal(price)

    async def list_active_bookings(self, property_id, start=None, end=None) -> list[Booking]:
        await self._io("list_active_bookings")
        rows = [
            b
            for b in self.db.bookings.values()
            if b.property_id == property_id
            and b.status not in RELEASED_STATUSES
            and (end is None or b.check_in < end)
            and (start is None or b.check_out > start)
        ]
        return sorted(rows, key=lambda b: b.check_in)

    async def add_booking(self, booking: Booking) -> Booking:
        await self._io("add_booking")
        if booking.created_at is None:
            booking.created_at = datetime.now()
        self._staged.append(booking)
        return booking

    async def get_booking(self, booking_id, *, for_update: bool = False) -> Booking | None:
        await self._io("get_booking")
        return self.db.bookings.get(booking_id)

    async def get_booking_by_payment_reference(self, payment_reference, *, for_update: bool = False):
        await self._io("get_booking_by_payment_reference")
        return next((b for b in self.db.bookings.values() if b.payment_reference == payment_reference), None)

    async def list_stale_pending(self, older_than: timedelta) -> list[Booking]:
        await self._io("list_stale_pending")
        cutoff = datetime.now() - older_than
        rows = [b for b in self.db.bookings.values() if b.status == PENDING and b.created_at < cutoff]
        return sorted(rows, key=lambda b: b.created_at)

    async def save(self) -> None:
        await self._io("save")


class FakeGateway:
    """Payment gateway double: records sessions, optionally fails or stalls."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.fail = False
        self.delay: float | None = None
        self.expired: list[str] = []
        self.paid: set[str] = set()
        self.fail_expire = False

    async def create_payment_session(self, amount, currency, customer_email, metadata, description) -> PaymentSession:
        self.calls.append(
            {
                "amount": amount,
                "currency": currency,
                "customer_email": customer_email,
                "metadata": metadata,
                "description": description,
            }
        )
        if self.delay is not None:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise PaymentSessionError("Payment provider could not start checkout")
        session_id = f"cs_test_{len(self.calls)}"
        return PaymentSession(session_id=session_id, redirect_url=f"https://checkout.stripe.test/{session_id}")

    async def expire_payment_session(self, session_id) -> bool:
        if self.fail_expire:
            raise PaymentSessionError("Payment provider could not expire checkout")
        if session_id in self.paid:
            return False
        self.expired.append(session_id)
        return True


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, uuid.UUID]] = []

    async def booking_confirmed(self, booking, prop) -> None:
        self.sent.append(("booking_confirmed", booking.id))

    async def booking_cancelled(self, booking, prop) -> None:
        self.sent.append(("booking_cancelled", booking.id))


# ---------------------------------------------------------------------------
# Fixtures: fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def store(fake_db: FakeDatabase) -> FakeBookingStore:
    return FakeBookingStore(fake_db)


@pytest.fixture
def new_store(fake_db: FakeDatabase):
    """Factory for extra stores over the same data, one per concurrent caller."""
    return lambda: FakeBookingStore(fake_db)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_property(fake_db: FakeDatabase):
    """Factory: put a property straight into the fake database."""

    def _make(**overrides) -> Property:
        fields = {
            "id": uuid.uuid4(),
            "name": "Test Cottage",
            "address": "1 Test Lane",
            "max_guests": 4,
            "base_price_per_night": Decimal("100.00"),
            "weekend_price_per_night": None,
            "min_stay_nights": 1,
        }
        fields.update(overrides)
        prop = Property(**fields)
        fake_db.properties[prop.id] = prop
        return prop

    return _make


@pytest.fixture
def make_booking(fake_db: FakeDatabase):
    """Factory: put a booking straight into the fake database."""

    def _make(prop: Property, check_in: date, check_out: date, status: str = CONFIRMED, **overrides) -> Booking:
        fields = {
            "id": uuid.uuid4(),
            "property_id": prop.id,
            "confirmation_code": f"BOK-{uuid.uuid4().hex[:8].upper()}",
            "guest_first_name": "Existing",
            "guest_last_name": "Guest",
            "guest_email": "existing@example.com",
            "guest_phone": "+10000000000",
            "check_in": check_in,
            "check_out": check_out,
            "num_guests": 2,
            "total_price": prop.base_price_per_night * (check_out - check_in).days,
            "status": status,
            "created_at": datetime.now(),
        }
        fields.update(overrides)
        booking = Booking(**fields)
        fake_db.bookings[booking.id] = booking
        return booking

    return _make


@pytest.fixture
def block(fake_db: FakeDatabase):
    """Factory: add a host block for one night."""

    def _block(prop: Property, day: date, reason: str | None = "Owner stay") -> BlockedDate:
        row = BlockedDate(id=uuid.uuid4(), property_id=prop.id, date=day, reason=reason, event_id=None)
        fake_db.blocked[(prop.id, day)] = row
        return row

    return _block


# ---------------------------------------------------------------------------
# Fixtures: HTTP client wired to the fakes
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    fake_db: FakeDatabase,
    gateway: FakeGateway,
    notifier: RecordingNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the in-memory store."""

    async def override_get_booking_store() -> FakeBookingStore:
        return FakeBookingStore(fake_db)

    app.dependency_overrides[get_booking_store] = override_get_booking_store
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Enable the admin surface for one test and return its auth header."""
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)
    return {"X-Admin-Key": ADMIN_KEY}


# ---------------------------------------------------------------------------
# PostgreSQL: the `directstay_test` database on the configured server.
# ---------------------------------------------------------------------------

_base_url = settings.async_database_url
_test_db_url = _base_url.rsplit("/", 1)[0] + "/directstay_test"


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine():
    """Session-scoped engine; skips PG-backed tests when the test DB is unreachable."""
    engine = create_async_engine(_test_db_url, echo=False, pool_pre_ping=True)
    try:
        async with engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
            await conn.run_sync(Base.metadata.create_all)
    except (OSError, SQLAlchemyError) as e:
        await engine.dispose()
        pytest.skip(f"directstay_test database unavailable: {e}")
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(loop_scope="session")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back.

    ``commit()`` inside the code under test only releases a savepoint.
    """
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(
            bind=connection,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint",
        )
        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()
