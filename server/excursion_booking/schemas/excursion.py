"""Excursion-related Pydantic schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.excursion import ExcursionCategory
from .common import Money


class CreateExcursionRequest(BaseModel):
    """Request schema for publishing an excursion."""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None)
    category: ExcursionCategory = Field(...)
    duration_hours: float = Field(..., gt=0, le=72)
    max_participants: int = Field(..., ge=1, le=500)
    price_per_person: Money = Field(..., description="Price per participant")
    meeting_point: Optional[str] = Field(None, max_length=255)
    difficulty_level: int = Field(1, ge=1, le=5)


class GetExcursionRequest(BaseModel):
    """Request schema for getting an excursion."""

    excursion_id: UUID = Field(..., description="Excursion to retrieve")


class ListExcursionsRequest(BaseModel):
    """Request schema for listing excursions."""

    category: Optional[ExcursionCategory] = Field(None, description="Filter by category")
    guide_id: Optional[UUID] = Field(None, description="Filter by guide")
    include_inactive: bool = Field(False)
    limit: int = Field(50, ge=1, le=200)


class SetExcursionActiveRequest(BaseModel):
    """Request schema for activating or retiring an excursion."""

    excursion_id: UUID = Field(...)
    is_active: bool = Field(...)


class Excursion(BaseModel):
    """Excursion response schema."""

    id: UUID = Field(..., description="Unique excursion ID")
    guide_id: UUID = Field(...)
    title: str = Field(...)
    description: Optional[str] = Field(None)
    category: ExcursionCategory = Field(...)
    duration_hours: float = Field(...)
    max_participants: int = Field(...)
    price_per_person: Money = Field(...)
    meeting_point: Optional[str] = Field(None)
    difficulty_level: int = Field(...)
    is_active: bool = Field(...)
    created_at: datetime = Field(...)


class ListExcursionsResponse(BaseModel):
    """Response schema for listing excursions."""

    items: List[Excursion] = Field(default_factory=list)
