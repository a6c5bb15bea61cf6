"""Guide and tour operator onboarding schemas."""

import datetime as dt
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class RegisterGuideRequest(BaseModel):
    """Request schema for the caller to register as a guide."""

    company_name: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)


class RegisterTourOperatorRequest(BaseModel):
    """Request schema for the caller to register as a tour operator."""

    company_name: str = Field(..., min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)


class PasswordResetRequest(BaseModel):
    """Request schema for emailing a password-reset link."""

    email: str = Field(..., min_length=3, max_length=255)
    reset_token: str = Field(..., min_length=8, max_length=512)


class Guide(BaseModel):
    id: UUID = Field(...)
    user_id: UUID = Field(...)
    company_name: Optional[str] = Field(None)
    city: Optional[str] = Field(None)
    is_verified: bool = Field(...)
    created_at: dt.datetime = Field(...)

    class Config:
        from_attributes = True


class TourOperator(BaseModel):
    id: UUID = Field(...)
    user_id: UUID = Field(...)
    company_name: str = Field(...)
    city: Optional[str] = Field(None)
    is_verified: bool = Field(...)
    created_at: dt.datetime = Field(...)

    class Config:
        from_attributes = True


class EmailDispatchResponse(BaseModel):
    """Whether the email API accepted the message."""

    sent: bool = Field(...)
