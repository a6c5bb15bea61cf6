"""Notification schemas."""

import datetime as dt
from typing import Any, Dict, List
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.notification import NotificationChannel, NotificationType


class ListNotificationsRequest(BaseModel):
    """Request schema for the caller's notifications."""

    unread_only: bool = Field(False)
    limit: int = Field(50, ge=1, le=200)


class MarkReadRequest(BaseModel):
    """Request schema for marking one notification read."""

    notification_id: UUID = Field(...)


class Notification(BaseModel):
    """Notification response schema."""

    id: UUID = Field(...)
    type: NotificationType = Field(...)
    title: str = Field(...)
    message: str = Field(...)
    data: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = Field(...)
    channel: NotificationChannel = Field(...)
    created_at: dt.datetime = Field(...)

    class Config:
        from_attributes = True


class ListNotificationsResponse(BaseModel):
    items: List[Notification] = Field(default_factory=list)
    unread_count: int = Field(0)


class UnreadCount(BaseModel):
    unread_count: int = Field(0)
