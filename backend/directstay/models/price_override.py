"""Per-date nightly price overrides."""

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from directstay.database import Base, UUIDPrimaryKeyMixin


class PriceOverride(UUIDPrimaryKeyMixin, Base):
    """Custom nightly rate for one date; beats weekend and base rates."""

    __tablename__ = "price_overrides"

    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    price_per_night: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    __table_args__ = (UniqueConstraint("property_id", "date", name="uq_price_overrides_property_date"),)
