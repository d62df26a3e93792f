"""Release pending bookings whose checkout was never completed.

Meant for cron (or any scheduler) alongside the Stripe ``checkout.session.expired``
webhook, which covers the normal case; this sweep catches holds whose
session was never created or whose webhook never arrived.

Run inside Docker:
    docker compose exec backend python -m scripts.expire_pending_holds [--minutes 90]

With STRIPE_SECRET_KEY set, each hold's checkout session is expired on Stripe
before the booking is released, so a guest can no longer pay for freed nights.
"""

import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from directstay.config import settings
from directstay.database import engine, session_scope
from directstay.payments.stripe_client import StripePaymentGateway
from directstay.services.booking_store import BookingStore
from directstay.services.reconciler import expire_stale_pending

logger = logging.getLogger("directstay.scripts.expire_pending_holds")


async def run(minutes: int | None) -> int:
    older_than = timedelta(minutes=minutes) if minutes else None
    gateway = StripePaymentGateway() if settings.stripe_secret_key else None
    if gateway is None:
        logger.warning("STRIPE_SECRET_KEY not set; releasing holds without expiring their checkout sessions")
    try:
        async with session_scope() as session:
            expired = await expire_stale_pending(BookingStore(session), older_than, gateway)
    finally:
        await engine.dispose()
    for booking_id in expired:
        logger.info("Released pending booking %s", booking_id)
    return len(expired)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--minutes",
        type=int,
        default=None,
        help=(
            "Release holds older than this many minutes "
            "(default and floor: PENDING_HOLD_MINUTES + PENDING_HOLD_GRACE_MINUTES)"
        ),
    )
    args = parser.parse_args()
    count = asyncio.run(run(args.minutes))
    print(f"✅ Released {count} stale pending booking(s)")


if __name__ == "__main__":
    main()
