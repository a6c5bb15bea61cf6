"""Booking model definition."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .mixins import TimestampMixin


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingChannel(str, Enum):
    """Who placed the booking."""
    DIRECT = "direct"
    RESELLER = "reseller"


class Booking(TimestampMixin, Base):
    """A client's reservation of spots on a slot. Only confirmed bookings consume capacity."""

    __tablename__ = "bookings"

    code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True, index=True)

    excursion_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("excursions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    slot_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("availability_slots.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    client_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    tour_operator_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("tour_operators.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    client_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    participants_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # Money in minor units
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )
    channel: Mapped[BookingChannel] = mapped_column(
        String(20),
        nullable=False,
        default=BookingChannel.DIRECT
    )

    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    cancellation_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Check-in
    is_checked_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    checkin_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    checkin_guide_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("guides.id", ondelete="SET NULL"),
        nullable=True
    )

    __table_args__ = (
        CheckConstraint("participants_count > 0", name="ck_booking_participants_positive"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("length(code) > 0", name="ck_booking_code_not_empty"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, code='{self.code}', slot_id={self.slot_id}, "
            f"participants={self.participants_count}, status={self.status})>"
        )
