"""Property model — a single short-term rental listing."""

from decimal import Decimal

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from directstay.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Property(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A bookable rental. Rates are read by pricing, never by availability."""

    __tablename__ = "properties"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    address: Mapped[str | None] = mapped_column(String(255), default=None)
    max_guests: Mapped[int | None] = mapped_column(Integer, default=None)
    base_price_per_night: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    weekend_price_per_night: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), default=None)
    min_stay_nights: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    host_name: Mapped[str | None] = mapped_column(String(255), default=None)
    host_email: Mapped[str | None] = mapped_column(String(255), default=None)

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, name={self.name!r}, min_stay={self.min_stay_nights})>"
