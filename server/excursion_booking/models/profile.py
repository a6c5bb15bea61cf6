"""Profile, guide and tour operator model definitions."""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .mixins import TimestampMixin


class UserRole(str, Enum):
    """Role carried by a profile and by the bearer token."""
    CLIENT = "client"
    GUIDE = "guide"
    TOUR_OPERATOR = "tour_operator"
    ADMIN = "admin"


class Profile(TimestampMixin, Base):
    """A signed-in user. The id is the bearer token's subject."""

    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.CLIENT,
        index=True
    )

    @property
    def full_name(self) -> str:
        parts = [self.first_name or "", self.last_name or ""]
        return " ".join(part for part in parts if part) or self.email

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, email='{self.email}', role={self.role})>"


class Guide(TimestampMixin, Base):
    """A guide publishing excursions."""

    __tablename__ = "guides"

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Informational; the booking commission comes from the commission policy
    commission_rate: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    def __repr__(self) -> str:
        return f"<Guide(id={self.id}, user_id={self.user_id}, company='{self.company_name}')>"


class TourOperator(TimestampMixin, Base):
    """A reseller booking excursions for its own clients."""

    __tablename__ = "tour_operators"

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    commission_rate: Mapped[int] = mapped_column(Integer, nullable=False, default=20)

    def __repr__(self) -> str:
        return f"<TourOperator(id={self.id}, company='{self.company_name}')>"
