"""Availability slot model definition."""

import datetime as dt
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, Integer, Time, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .mixins import TimestampMixin


class AvailabilitySlot(TimestampMixin, Base):
    """
    A bookable date and start time of an excursion.

    ``available_spots`` caches ``max(0, max_participants - confirmed participants)``
    and is rewritten by every availability refresh.
    """

    __tablename__ = "availability_slots"

    excursion_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("excursions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    # Minor units; None means the excursion price applies
    price_override: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Closed by the guide; keeps is_available false whatever the spot count
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    available_spots: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("max_participants > 0", name="ck_slot_max_participants_positive"),
        CheckConstraint("available_spots >= 0", name="ck_slot_available_spots_non_negative"),
        CheckConstraint(
            "price_override IS NULL OR price_override >= 0",
            name="ck_slot_price_override_non_negative"
        ),
        Index("ix_slot_excursion_date", "excursion_id", "date"),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilitySlot(id={self.id}, excursion_id={self.excursion_id}, "
            f"date={self.date}, spots={self.available_spots}/{self.max_participants})>"
        )
