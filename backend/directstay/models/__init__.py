"""SQLAlchemy models for DirectStay.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from directstay.models.blocked_date import BlockedDate
from directstay.models.booking import Booking
from directstay.models.price_override import PriceOverride
from directstay.models.property import Property

__all__ = [
    "BlockedDate",
    "Booking",
    "PriceOverride",
    "Property",
]
