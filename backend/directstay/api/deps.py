"""Shared API dependencies — single import point for all routers.

Collaborators are constructed per request and injected, so tests can swap
any of them through ``app.dependency_overrides``::

    from directstay.api.deps import get_booking_store, get_payment_gateway
"""

import secrets

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from directstay.config import settings
from directstay.database import get_db
from directstay.payments.stripe_client import PaymentGateway, StripePaymentGateway
from directstay.services.booking_store import BookingStore
from directstay.services.notifications import LoggingNotifier, Notifier

_admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


async def get_booking_store(db: AsyncSession = Depends(get_db)) -> BookingStore:
    """Request-scoped booking store over the request's DB session."""
    return BookingStore(db)


def get_payment_gateway() -> PaymentGateway:
    return StripePaymentGateway()


def get_notifier() -> Notifier:
    return LoggingNotifier()


async def require_admin(api_key: str | None = Security(_admin_key_header)) -> None:
    """Guard host calendar management behind the configured admin key.

    Raises:
        HTTPException 503: If no admin key is configured.
        HTTPException 401: If the header is missing or wrong.
    """
    if not settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin endpoints are disabled",
        )
    if api_key is None or not secrets.compare_digest(api_key, settings.admin_api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )


__all__ = [
    "get_db",
    "get_booking_store",
    "get_payment_gateway",
    "get_notifier",
    "require_admin",
]
