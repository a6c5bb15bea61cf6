"""Notification model definition."""

from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .mixins import TimestampMixin


class NotificationType(str, Enum):
    """Booking lifecycle events that produce notifications."""
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    REMINDER_24H = "reminder_24h"
    CHECKIN_SUCCESS = "checkin_success"


class NotificationChannel(str, Enum):
    """Where a notification is delivered."""
    EMAIL = "email"
    IN_APP = "in_app"
    BOTH = "both"


class Notification(TimestampMixin, Base):
    """A stored notification addressed to a profile."""

    __tablename__ = "notifications"

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    type: Mapped[NotificationType] = mapped_column(String(32), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    channel: Mapped[NotificationChannel] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationChannel.IN_APP
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"
