"""Reseller cart and sales schemas."""

import datetime as dt
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .booking import Booking
from .common import Money


class AddCartItemRequest(BaseModel):
    """Request schema for adding an excursion slot to the operator's cart."""

    excursion_id: UUID = Field(...)
    slot_id: UUID = Field(...)
    participants_count: int = Field(..., ge=1, le=100)
    client_name: str = Field(..., min_length=1, max_length=255)
    client_email: str = Field(..., min_length=3, max_length=255)
    special_requests: Optional[str] = Field(None, max_length=2000)


class RemoveCartItemRequest(BaseModel):
    """Request schema for removing one cart item."""

    item_id: UUID = Field(...)


class CartItem(BaseModel):
    """Cart item response schema."""

    id: UUID = Field(...)
    excursion_id: UUID = Field(...)
    slot_id: UUID = Field(...)
    participants_count: int = Field(...)
    client_name: str = Field(...)
    client_email: str = Field(...)
    special_requests: Optional[str] = Field(None)
    created_at: dt.datetime = Field(...)

    class Config:
        from_attributes = True


class Cart(BaseModel):
    """The operator's current cart."""

    items: List[CartItem] = Field(default_factory=list)


class CheckoutFailure(BaseModel):
    """A cart item that could not be booked."""

    item_id: UUID = Field(...)
    error: str = Field(...)
    error_code: Optional[str] = Field(None)


class CheckoutResponse(BaseModel):
    """Outcome of booking every cart item."""

    bookings: List[Booking] = Field(default_factory=list)
    failures: List[CheckoutFailure] = Field(default_factory=list)
    total_revenue: Money = Field(...)
    total_commission: Money = Field(...)


class QuoteRequest(BaseModel):
    """Request schema for a commission breakdown."""

    price_per_person: int = Field(..., ge=0, description="Minor units")
    participants_count: int = Field(..., ge=1, le=100)


class CommissionQuote(BaseModel):
    """Split of a reseller sale between guide, operator and platform."""

    total: Money = Field(...)
    guide_share: Money = Field(...)
    operator_share: Money = Field(...)
    platform_share: Money = Field(...)


class SalesSummary(BaseModel):
    """An operator's revenue and commission over its live bookings."""

    total_bookings: int = Field(0)
    total_revenue: Money = Field(...)
    total_commission: Money = Field(...)
    unique_clients: int = Field(0)
