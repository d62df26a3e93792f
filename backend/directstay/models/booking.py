"""Booking model — a guest's hold or reservation on a property."""

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, Numeric, String, Text, func, literal_column
from sqlalchemy.dialects.postgresql import ExcludeConstraint
from sqlalchemy.orm import Mapped, mapped_column

from directstay.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

PENDING = "pending"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"
PAYMENT_FAILED = "payment_failed"
REFUNDED = "refunded"

BOOKING_STATUSES = (PENDING, CONFIRMED, CANCELLED, PAYMENT_FAILED, REFUNDED)

# Bookings in these states hold no nights.
RELEASED_STATUSES = frozenset({CANCELLED, PAYMENT_FAILED, REFUNDED})


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A stay over the half-open night range ``[check_in, check_out)``."""

    __tablename__ = "bookings"

    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    confirmation_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    guest_first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    guest_last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    guest_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    num_guests: Mapped[int] = mapped_column(Integer, default=1)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=PENDING,
        server_default=PENDING,
        index=True,
    )  # pending, confirmed, cancelled, payment_failed, refunded
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    blocked_event_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("ix_bookings_property_dates", "property_id", "check_in", "check_out"),
        CheckConstraint("check_out > check_in", name="ck_bookings_range"),
    )

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, property_id={self.property_id}, "
            f"{self.check_in}..{self.check_out}, status={self.status})>"
        )


# No two holding bookings of one property may share a night. Requires the
# btree_gist extension.
_table = Booking.__table__
_table.append_constraint(
    ExcludeConstraint(
        (_table.c.property_id, "="),
        (func.daterange(_table.c.check_in, _table.c.check_out, literal_column("'[)'")), "&&"),
        name="ex_bookings_no_overlap",
        using="gist",
        where=_table.c.status.in_([PENDING, CONFIRMED]),
    )
)
