"""Blocked date model — one row per unavailable night."""

import datetime as dt
import uuid

from sqlalchemy import Date, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from directstay.database import Base, UUIDPrimaryKeyMixin

BOOKED_REASON = "Booked"


class BlockedDate(UUIDPrimaryKeyMixin, Base):
    """An explicit unavailable night for a property.

    Host blocks carry no ``event_id``. Nights materialized from a confirmed
    booking share the booking's ``blocked_event_id`` so they can be removed
    as a unit.
    """

    __tablename__ = "blocked_dates"

    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), default=None)
    event_id: Mapped[uuid.UUID | None] = mapped_column(default=None, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(server_default=func.now())

    __table_args__ = (UniqueConstraint("property_id", "date", name="uq_blocked_dates_property_date"),)

    def __repr__(self) -> str:
        return f"<BlockedDate(property_id={self.property_id}, date={self.date}, event_id={self.event_id})>"
