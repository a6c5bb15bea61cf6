"""Profiles and partner (guide, tour operator) accounts."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import db_operation
from ..core.exceptions import AuthorizationError, ConflictError
from ..models.profile import Guide, Profile, TourOperator, UserRole
from ..schemas.auth import CurrentUser
from ..schemas.partner import RegisterGuideRequest, RegisterTourOperatorRequest
from .email_client import EmailClient

logger = logging.getLogger(__name__)


def primary_role(user: CurrentUser) -> UserRole:
    """Most specific role claimed by the token."""
    for role in (UserRole.ADMIN, UserRole.GUIDE, UserRole.TOUR_OPERATOR):
        if role.value in user.roles:
            return role
    return UserRole.CLIENT


class AccountService:
    """Service for profiles and partner registration."""

    def __init__(self, db: AsyncSession, email_client: Optional[EmailClient] = None):
        self.db = db
        self.email_client = email_client

    async def ensure_profile(self, user: CurrentUser) -> Profile:
        """
        Return the caller's profile, creating a minimal one from the token claims if absent.

        Does not commit; the caller's transaction carries the insert.
        """
        profile = await self.db.get(Profile, user.id)
        if profile is not None:
            return profile

        profile = Profile(
            id=user.id,
            email=user.email or f"{user.id}@unknown.invalid",
            first_name=user.first_name,
            last_name=user.last_name,
            role=primary_role(user),
        )
        self.db.add(profile)
        await self.db.flush()

        logger.info(
            "Profile created from token claims",
            extra={"profile_id": str(user.id), "role": profile.role}
        )
        return profile

    async def get_guide_for_user(self, user_id: UUID) -> Optional[Guide]:
        result = await self.db.execute(select(Guide).where(Guide.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_guide_for_user_or_raise(self, user_id: UUID) -> Guide:
        guide = await self.get_guide_for_user(user_id)
        if guide is None:
            raise AuthorizationError("No guide account is registered for this user")
        return guide

    async def get_tour_operator_for_user(self, user_id: UUID) -> Optional[TourOperator]:
        result = await self.db.execute(select(TourOperator).where(TourOperator.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_tour_operator_for_user_or_raise(self, user_id: UUID) -> TourOperator:
        operator = await self.get_tour_operator_for_user(user_id)
        if operator is None:
            raise AuthorizationError("No tour operator account is registered for this user")
        return operator

    async def register_client(self, user: CurrentUser) -> Profile:
        """Create the caller's client profile and send the welcome email."""
        async with db_operation(self.db, "register client"):
            existing = await self.db.get(Profile, user.id)
            profile = await self.ensure_profile(user)
            await self.db.commit()

        if existing is None and self.email_client is not None:
            await self.email_client.send_welcome_client(
                profile.email, profile.first_name or "", profile.last_name or ""
            )
        return profile

    async def register_guide(self, user: CurrentUser, request: RegisterGuideRequest) -> Guide:
        """
        Register the caller as a guide and send the welcome email.

        Raises:
            ConflictError: If the caller is already a guide
        """
        async with db_operation(self.db, "register guide"):
            if await self.get_guide_for_user(user.id):
                raise ConflictError(detail="This user is already registered as a guide")

            profile = await self.ensure_profile(user)
            profile.role = UserRole.GUIDE
            if request.phone:
                profile.phone = request.phone

            guide = Guide(
                user_id=profile.id,
                company_name=request.company_name,
                city=request.city,
                is_verified=False,
            )
            self.db.add(guide)
            await self.db.commit()

        logger.info("Guide registered", extra={"guide_id": str(guide.id), "user_id": str(user.id)})

        if self.email_client is not None:
            await self.email_client.send_welcome_guide(
                profile.email, profile.first_name or "", profile.last_name or ""
            )
        return guide

    async def register_tour_operator(self, user: CurrentUser, request: RegisterTourOperatorRequest) -> TourOperator:
        """
        Register the caller as a tour operator and send the welcome email.

        Raises:
            ConflictError: If the caller is already a tour operator
        """
        async with db_operation(self.db, "register tour operator"):
            if await self.get_tour_operator_for_user(user.id):
                raise ConflictError(detail="This user is already registered as a tour operator")

            profile = await self.ensure_profile(user)
            profile.role = UserRole.TOUR_OPERATOR
            if request.phone:
                profile.phone = request.phone

            operator = TourOperator(
                user_id=profile.id,
                company_name=request.company_name,
                city=request.city,
                is_verified=False,
            )
            self.db.add(operator)
            await self.db.commit()

        logger.info(
            "Tour operator registered",
            extra={"tour_operator_id": str(operator.id), "user_id": str(user.id)}
        )

        if self.email_client is not None:
            await self.email_client.send_welcome_tour_operator(
                profile.email, profile.first_name or "", profile.last_name or ""
            )
        return operator
