"""Availability slot Pydantic schemas."""

import datetime as dt
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CreateSlotRequest(BaseModel):
    """Request schema for opening a slot on an excursion."""

    excursion_id: UUID = Field(...)
    date: dt.date = Field(..., description="Slot date")
    start_time: dt.time = Field(..., description="Start time, local to the business time zone")
    max_participants: int = Field(..., ge=1, le=500)
    price_override: Optional[int] = Field(None, ge=0, description="Per-person price in minor units")


class ToggleSlotRequest(BaseModel):
    """Request schema for opening or closing a slot."""

    slot_id: UUID = Field(...)
    is_available: bool = Field(...)


class UpdateSlotRequest(BaseModel):
    """
    Request schema for changing a slot's size or price.

    Fields left out are unchanged. ``clear_price_override`` drops the override
    so that the excursion price applies again.
    """

    slot_id: UUID = Field(...)
    max_participants: Optional[int] = Field(None, ge=1, le=500)
    price_override: Optional[int] = Field(None, ge=0)
    clear_price_override: bool = Field(False)


class RefreshSlotRequest(BaseModel):
    """Request schema for forcing an availability recomputation."""

    slot_id: UUID = Field(...)


class ListAvailableSlotsRequest(BaseModel):
    """Request schema for listing the bookable slots of an excursion."""

    excursion_id: UUID = Field(...)
    date: Optional[dt.date] = Field(None, description="Restrict to one day")


class RealtimeAvailabilityRequest(BaseModel):
    """Request schema for the live availability of every open slot of an excursion."""

    excursion_id: UUID = Field(...)


class Slot(BaseModel):
    """Slot response schema."""

    id: UUID = Field(...)
    excursion_id: UUID = Field(...)
    date: dt.date = Field(...)
    start_time: dt.time = Field(...)
    max_participants: int = Field(...)
    price_override: Optional[int] = Field(None)
    is_available: bool = Field(...)
    is_closed: bool = Field(False, description="Closed by the guide")
    available_spots: int = Field(..., ge=0)

    class Config:
        from_attributes = True


class SlotAvailability(BaseModel):
    """Live availability of a slot, computed from confirmed bookings."""

    slot_id: UUID = Field(...)
    date: dt.date = Field(...)
    start_time: dt.time = Field(...)
    max_participants: int = Field(...)
    available_spots: int = Field(..., ge=0)
    is_available: bool = Field(...)
    computed_at: dt.datetime = Field(...)


class ListSlotsResponse(BaseModel):
    """Response schema for slot listings."""

    items: List[Slot] = Field(default_factory=list)


class RealtimeAvailabilityResponse(BaseModel):
    """Response schema for live availability."""

    excursion_id: UUID = Field(...)
    slots: List[SlotAvailability] = Field(default_factory=list)
