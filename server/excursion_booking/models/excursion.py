"""Excursion model definition."""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .mixins import TimestampMixin


class ExcursionCategory(str, Enum):
    """Excursion category enumeration."""
    BEACH = "beach"
    HIKING = "hiking"
    CULTURAL = "cultural"
    NAUTICAL = "nautical"
    ADVENTURE = "adventure"
    GASTRONOMY = "gastronomy"


class Excursion(TimestampMixin, Base):
    """An excursion offered by a guide."""

    __tablename__ = "excursions"

    guide_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("guides.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[ExcursionCategory] = mapped_column(String(20), nullable=False, index=True)
    duration_hours: Mapped[float] = mapped_column(Numeric(4, 1, asdecimal=False), nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)

    # Money in minor units
    price_per_person: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")

    meeting_point: Mapped[str | None] = mapped_column(String(255), nullable=True)
    difficulty_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    __table_args__ = (
        CheckConstraint("max_participants > 0", name="ck_excursion_max_participants_positive"),
        CheckConstraint("price_per_person >= 0", name="ck_excursion_price_non_negative"),
        CheckConstraint(
            "difficulty_level >= 1 AND difficulty_level <= 5",
            name="ck_excursion_difficulty_range"
        ),
    )

    def __repr__(self) -> str:
        return f"<Excursion(id={self.id}, title='{self.title}', active={self.is_active})>"
