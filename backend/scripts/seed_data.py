"""Seed the database with sample rental listings, blocked nights, and bookings.

Run inside Docker:
    docker compose exec backend python -m scripts.seed_data
"""

import asyncio
import sys
import uuid
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from directstay.database import session_scope
from directstay.dates import dates_in_range, quote_stay
from directstay.models.booking import CANCELLED, CONFIRMED, PENDING, Booking
from directstay.models.property import Property
from directstay.services.booking_service import new_confirmation_code
from directstay.services.booking_store import BookingStore
from directstay.services.reconciler import confirm_booking

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

PROPERTIES = [
    {
        "name": "Harbour View Cottage",
        "description": (
            "Two-bedroom cottage above the old harbour with a wood stove, a sunny "
            "deck, and a five-minute walk to the ferry."
        ),
        "address": "14 Quay Street",
        "max_guests": 4,
        "base_price_per_night": Decimal("145.00"),
        "weekend_price_per_night": Decimal("185.00"),
        "min_stay_nights": 2,
        "host_name": "Demo Host",
        "host_email": "host@directstay.example",
    },
    {
        "name": "Pine Ridge Cabin",
        "description": "A one-room cabin at the edge of the forest. No wifi, plenty of stars.",
        "address": "Lot 7, Ridge Road",
        "max_guests": 2,
        "base_price_per_night": Decimal("95.00"),
        "weekend_price_per_night": None,
        "min_stay_nights": 1,
        "host_name": "Demo Host",
        "host_email": "host@directstay.example",
    },
]

GUESTS = [
    {"first_name": "James", "last_name": "Wilson", "email": "james.wilson@example.com", "phone": "+61412345678"},
    {"first_name": "Sarah", "last_name": "Chen", "email": "sarah.chen@example.com", "phone": "+6591234567"},
    {"first_name": "Lucas", "last_name": "Silva", "email": "lucas.silva@example.com", "phone": "+5511987654321"},
]


def _build_bookings(properties: list[Property], today: date) -> list[dict]:
    """Bookings per property: none of the holding ones share a night."""
    cottage, cabin = properties
    return [
        # Back-to-back stays: the second checks in the day the first checks out
        {"property": cottage, "guest": 0, "start": 10, "nights": 3, "status": CONFIRMED},
        {"property": cottage, "guest": 1, "start": 13, "nights": 4, "status": CONFIRMED},
        {"property": cottage, "guest": 2, "start": 25, "nights": 2, "status": PENDING},
        # Cancelled stay: its nights are free again
        {"property": cottage, "guest": 2, "start": 30, "nights": 3, "status": CANCELLED},
        {"property": cabin, "guest": 1, "start": 5, "nights": 2, "status": CONFIRMED},
    ]


# ---------------------------------------------------------------------------
# Main seed function
# ---------------------------------------------------------------------------


async def seed() -> None:
    """Populate the database with sample listings.

    Idempotent: deletes the sample properties (and, by cascade, their
    calendars) before re-creating them.
    """
    async with session_scope() as session:
        names = [p["name"] for p in PROPERTIES]
        result = await session.execute(select(Property.id).where(Property.name.in_(names)))
        existing = list(result.scalars().all())
        if existing:
            print(f"⚠️  {len(existing)} sample properties already exist. Deleting and re-seeding...")
            await session.execute(delete(Property).where(Property.id.in_(existing)))
            await session.flush()

        store = BookingStore(session)
        today = date.today()

        # ------------------------------------------------------------------
        # 1. Create properties
        # ------------------------------------------------------------------
        created_properties: list[Property] = []
        for prop_data in PROPERTIES:
            prop = await store.add_property(Property(id=uuid.uuid4(), **prop_data))
            created_properties.append(prop)
            print(f"   🏠 {prop.name} (${prop.base_price_per_night}/night, min {prop.min_stay_nights})")

        cottage = created_properties[0]

        # ------------------------------------------------------------------
        # 2. Host blocks and a holiday price
        # ------------------------------------------------------------------
        maintenance = dates_in_range(today + timedelta(days=20), today + timedelta(days=22))
        blocked = await store.add_blocked_dates(cottage.id, maintenance, reason="Maintenance")
        holiday = today + timedelta(days=40)
        await store.set_price_overrides(cottage.id, {holiday: Decimal("260.00")})
        print(f"✅ Blocked {blocked} nights and set 1 price override on {cottage.name}")

        # ------------------------------------------------------------------
        # 3. Create bookings
        # ------------------------------------------------------------------
        booking_count = 0
        for bdata in _build_bookings(created_properties, today):
            prop: Property = bdata["property"]
            guest = GUESTS[bdata["guest"]]
            check_in = today + timedelta(days=bdata["start"])
            check_out = check_in + timedelta(days=bdata["nights"])

            booking = Booking(
                id=uuid.uuid4(),
                property_id=prop.id,
                confirmation_code=new_confirmation_code(),
                guest_first_name=guest["first_name"],
                guest_last_name=guest["last_name"],
                guest_email=guest["email"],
                guest_phone=guest["phone"],
                check_in=check_in,
                check_out=check_out,
                num_guests=1,
                total_price=quote_stay(check_in, check_out, prop).total,
                status=CANCELLED if bdata["status"] == CANCELLED else PENDING,
            )
            await store.add_booking(booking)
            if bdata["status"] == CONFIRMED:
                await confirm_booking(store, booking)
            booking_count += 1

        print(f"✅ Created {booking_count} bookings")
        print()
        print("=" * 60)
        print("📊 Seed Summary")
        print("=" * 60)
        print(f"   Properties:    {len(created_properties)}")
        print(f"   Bookings:      {booking_count}")
        for prop in created_properties:
            print(f"   {prop.name}: /api/v1/properties/{prop.id}")
        print("=" * 60)


if __name__ == "__main__":
    asyncio.run(seed())
