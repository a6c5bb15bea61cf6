"""Schemas for availability updates and booking conflicts pushed to watchers."""

import datetime as dt
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ConflictType(str, Enum):
    """Why a booking conflicts with its slot."""
    INSUFFICIENT_SPOTS = "insufficient_spots"
    SLOT_UNAVAILABLE = "slot_unavailable"
    GUIDE_UNAVAILABLE = "guide_unavailable"


class BookingConflict(BaseModel):
    """A conflict detected on a booking, not persisted."""

    slot_id: UUID = Field(...)
    excursion_id: UUID = Field(...)
    booking_id: Optional[UUID] = Field(None)
    requested_participants: int = Field(...)
    available_spots: int = Field(..., description="Unclamped remaining capacity; negative when overbooked")
    conflict_type: ConflictType = Field(...)
    message: str = Field(...)
    detected_at: dt.datetime = Field(...)

    @property
    def key(self) -> tuple:
        return (self.slot_id, self.conflict_type, self.booking_id)


class AvailabilityUpdate(BaseModel):
    """A change to a slot's availability."""

    slot_id: UUID = Field(...)
    excursion_id: UUID = Field(...)
    available_spots: int = Field(..., ge=0)
    is_available: bool = Field(...)
    timestamp: dt.datetime = Field(...)


class ListConflictsRequest(BaseModel):
    """Request schema for listing the active conflicts of an excursion."""

    excursion_id: Optional[UUID] = Field(None, description="All excursions when omitted")


class DismissConflictRequest(BaseModel):
    """Request schema for dismissing one conflict."""

    slot_id: UUID = Field(...)
    conflict_type: ConflictType = Field(...)
    booking_id: Optional[UUID] = Field(None)


class ListConflictsResponse(BaseModel):
    """Response schema for active conflicts."""

    items: List[BookingConflict] = Field(default_factory=list)


class ResolveConflictsResponse(BaseModel):
    """Slots refreshed while resolving conflicts."""

    refreshed_slot_ids: List[UUID] = Field(default_factory=list)
