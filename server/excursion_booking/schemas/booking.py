"""Booking-related Pydantic schemas."""

import datetime as dt
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.booking import BookingChannel, BookingStatus
from .common import Money


class CreateBookingRequest(BaseModel):
    """Request schema for a direct client booking."""

    excursion_id: UUID = Field(..., description="Excursion being booked")
    slot_id: UUID = Field(..., description="Slot being booked")
    participants_count: int = Field(..., le=100, description="Number of participants")
    special_requests: Optional[str] = Field(None, max_length=2000)


class CreateResellerBookingRequest(CreateBookingRequest):
    """Request schema for a booking placed by a tour operator for one of its clients."""

    client_name: str = Field(..., min_length=1, max_length=255)
    client_email: str = Field(..., min_length=3, max_length=255)


class ValidateBookingRequest(BaseModel):
    """Request schema for a dry-run validation."""

    excursion_id: UUID = Field(...)
    slot_id: UUID = Field(...)
    participants_count: int = Field(..., le=100)


class BookingIdRequest(BaseModel):
    """Request schema for operations addressing one booking."""

    booking_id: UUID = Field(..., description="Booking to act on")


class CheckInRequest(BaseModel):
    """Request schema for checking a client in with their booking code."""

    code: str = Field(..., min_length=4, max_length=16)


class BookingStatsRequest(BaseModel):
    """Request schema for a guide's booking statistics."""

    guide_id: Optional[UUID] = Field(None, description="Defaults to the calling guide")


class BookingValidationResponse(BaseModel):
    """Non-raising validation outcome."""

    is_valid: bool = Field(...)
    error: Optional[str] = Field(None)
    error_code: Optional[str] = Field(None)
    available_spots: Optional[int] = Field(None)


class Booking(BaseModel):
    """Booking response schema."""

    id: UUID = Field(..., description="Unique booking ID")
    code: str = Field(..., description="Confirmation and check-in code")
    excursion_id: UUID = Field(...)
    slot_id: UUID = Field(...)
    client_id: Optional[UUID] = Field(None)
    tour_operator_id: Optional[UUID] = Field(None)
    client_name: Optional[str] = Field(None)
    client_email: Optional[str] = Field(None)
    participants_count: int = Field(..., ge=1)
    total: Money = Field(..., description="Amount due")
    commission: Money = Field(..., description="Commission retained on the booking")
    status: BookingStatus = Field(...)
    channel: BookingChannel = Field(...)
    special_requests: Optional[str] = Field(None)
    booking_date: dt.date = Field(..., description="Date of the booked slot")
    cancellation_date: Optional[dt.date] = Field(None)
    is_checked_in: bool = Field(False)
    checkin_time: Optional[dt.datetime] = Field(None)
    created_at: dt.datetime = Field(...)


class ListBookingsResponse(BaseModel):
    """Response schema for booking listings."""

    items: List[Booking] = Field(default_factory=list)


class BookingStats(BaseModel):
    """Booking counts by status and revenue from confirmed bookings."""

    total: int = Field(0)
    confirmed: int = Field(0)
    pending: int = Field(0)
    cancelled: int = Field(0)
    revenue: Money = Field(...)
