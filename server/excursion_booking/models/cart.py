"""Reseller cart model definition."""

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .mixins import TimestampMixin


class CartItem(TimestampMixin, Base):
    """An excursion slot a tour operator intends to book for one of its clients."""

    __tablename__ = "cart_items"

    tour_operator_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tour_operators.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    excursion_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("excursions.id", ondelete="CASCADE"),
        nullable=False
    )
    slot_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("availability_slots.id", ondelete="CASCADE"),
        nullable=False
    )
    participants_count: Mapped[int] = mapped_column(Integer, nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("participants_count > 0", name="ck_cart_item_participants_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<CartItem(id={self.id}, operator={self.tour_operator_id}, "
            f"slot_id={self.slot_id}, participants={self.participants_count})>"
        )
