"""Excursion catalogue operations."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import db_operation
from ..core.exceptions import AuthorizationError, NotFoundError
from ..models.excursion import Excursion
from ..schemas.excursion import CreateExcursionRequest, ListExcursionsRequest

logger = logging.getLogger(__name__)


class ExcursionService:
    """Service for excursion-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_excursion(self, request: CreateExcursionRequest, guide_id: UUID) -> Excursion:
        """
        Publish a new excursion for a guide.

        Args:
            request: Excursion creation request
            guide_id: Guide that owns the excursion

        Returns:
            Created excursion entity
        """
        excursion = Excursion(
            guide_id=guide_id,
            title=request.title,
            description=request.description,
            category=request.category,
            duration_hours=request.duration_hours,
            max_participants=request.max_participants,
            price_per_person=request.price_per_person.amount,
            currency=request.price_per_person.currency,
            meeting_point=request.meeting_point,
            difficulty_level=request.difficulty_level,
            is_active=True,
        )

        async with db_operation(self.db, "create excursion"):
            self.db.add(excursion)
            await self.db.commit()

        logger.info(
            "Excursion created successfully",
            extra={
                "excursion_id": str(excursion.id),
                "guide_id": str(guide_id),
                "category": excursion.category,
                "max_participants": excursion.max_participants
            }
        )

        return excursion

    async def list_excursions(self, request: ListExcursionsRequest) -> list[Excursion]:
        stmt = select(Excursion)

        if not request.include_inactive:
            stmt = stmt.where(Excursion.is_active.is_(True))
        if request.category:
            stmt = stmt.where(Excursion.category == request.category)
        if request.guide_id:
            stmt = stmt.where(Excursion.guide_id == request.guide_id)

        stmt = stmt.order_by(Excursion.created_at.desc()).limit(request.limit)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def set_active(self, excursion_id: UUID, is_active: bool, guide_id: Optional[UUID]) -> Excursion:
        """
        Activate or retire an excursion. Retired excursions cannot be booked.

        Args:
            excursion_id: Excursion to change
            is_active: New state
            guide_id: Calling guide, or None for an administrator

        Raises:
            NotFoundError: If the excursion does not exist
            AuthorizationError: If the guide does not own the excursion
        """
        async with db_operation(self.db, "update excursion"):
            excursion = await self.get_owned_excursion(excursion_id, guide_id)
            excursion.is_active = is_active
            await self.db.commit()

        logger.info(
            "Excursion activity changed",
            extra={"excursion_id": str(excursion_id), "is_active": is_active}
        )
        return excursion

    async def get_excursion_by_id(self, excursion_id: UUID) -> Optional[Excursion]:
        """
        Get excursion by ID.

        Args:
            excursion_id: Excursion ID to search for

        Returns:
            Excursion if found, None otherwise
        """
        stmt = select(Excursion).where(Excursion.id == excursion_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_excursion_by_id_or_raise(self, excursion_id: UUID) -> Excursion:
        """Get excursion by ID or raise NotFoundError."""
        excursion = await self.get_excursion_by_id(excursion_id)
        if not excursion:
            logger.warning(
                "Excursion not found",
                extra={"excursion_id": str(excursion_id)}
            )
            raise NotFoundError(
                resource_type="excursion",
                resource_id=str(excursion_id)
            )
        return excursion

    async def get_owned_excursion(self, excursion_id: UUID, guide_id: Optional[UUID]) -> Excursion:
        """Fetch an excursion the guide owns; ``guide_id=None`` skips the ownership check."""
        excursion = await self.get_excursion_by_id_or_raise(excursion_id)
        if guide_id is not None and excursion.guide_id != guide_id:
            logger.warning(
                "Guide does not own excursion",
                extra={"excursion_id": str(excursion_id), "guide_id": str(guide_id)}
            )
            raise AuthorizationError("This excursion belongs to another guide")
        return excursion
