"""Pre-booking validation against slot, excursion, date and live capacity."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import (
    CapacityExceededError,
    PastDateError,
    ProblemDetailsException,
    UnavailableError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.availability_slot import AvailabilitySlot
from ..models.excursion import Excursion
from .availability_service import AvailabilityService, business_today
from .capacity import remaining_capacity

logger = logging.getLogger(__name__)

INVALID_REQUEST = "invalid_request"
SLOT_UNAVAILABLE = "slot_unavailable"
PAST_DATE = "past_date"
INSUFFICIENT_SPOTS = "insufficient_spots"
GUIDE_UNAVAILABLE = "guide_unavailable"


@dataclass
class BookingValidationResult:
    """Outcome of a booking validation. ``slot`` and ``excursion`` are set on success."""

    is_valid: bool
    error: Optional[str] = None
    error_code: Optional[str] = None
    available_spots: Optional[int] = None
    slot: Optional[AvailabilitySlot] = None
    excursion: Optional[Excursion] = None
    slot_id: Optional[UUID] = None
    requested_participants: int = 0
    slot_date: Optional[date] = None

    def to_exception(self) -> ProblemDetailsException:
        """Typed exception for a failed validation."""
        if self.is_valid:
            raise ValueError("A successful validation has no exception")

        slot_id = str(self.slot_id) if self.slot_id else None

        if self.error_code == INSUFFICIENT_SPOTS:
            return CapacityExceededError(
                slot_id=slot_id,
                requested_participants=self.requested_participants,
                available_spots=self.available_spots or 0,
                detail=self.error,
            )
        if self.error_code == PAST_DATE:
            return PastDateError(
                self.slot_date.isoformat() if self.slot_date else "",
                detail=self.error,
            )
        if self.error_code in (SLOT_UNAVAILABLE, GUIDE_UNAVAILABLE):
            return UnavailableError(self.error_code, self.error, slot_id=slot_id)
        return ValidationError(detail=self.error)


class BookingValidator:
    """
    Checks whether a slot can take a booking of a given size.

    Checks run in a fixed order and stop at the first failure: slot open,
    excursion active, date not past, live capacity, guide available.
    """

    def __init__(self, db: AsyncSession, today: Optional[date] = None):
        self.db = db
        self.today = today
        self.availability_service = AvailabilityService(db)

    def _fail(self, error_code: str, error: str, **fields) -> BookingValidationResult:
        metrics_collector.record_validation_failure(error_code)
        logger.info(
            "Booking validation failed",
            extra={
                "error_code": error_code,
                "slot_id": str(fields.get("slot_id")),
                "requested_participants": fields.get("requested_participants")
            }
        )
        return BookingValidationResult(is_valid=False, error=error, error_code=error_code, **fields)

    async def validate(
        self,
        excursion_id: UUID,
        slot_id: UUID,
        participants_count: int,
    ) -> BookingValidationResult:
        """
        Validate a prospective booking.

        Args:
            excursion_id: Excursion being booked
            slot_id: Slot being booked
            participants_count: Requested party size

        Returns:
            BookingValidationResult; never raises for business failures
        """
        base = {"slot_id": slot_id, "requested_participants": participants_count}

        if participants_count <= 0:
            return self._fail(
                INVALID_REQUEST,
                "Le nombre de participants doit être supérieur à zéro.",
                **base
            )

        slot = await self.availability_service.get_slot_by_id(slot_id)
        if slot is None or slot.excursion_id != excursion_id or not slot.is_available:
            return self._fail(
                SLOT_UNAVAILABLE,
                "Ce créneau n'est pas disponible ou n'existe pas.",
                **base
            )

        excursion = await self.availability_service.excursion_service.get_excursion_by_id(excursion_id)
        if excursion is None or not excursion.is_active:
            return self._fail(
                SLOT_UNAVAILABLE,
                "Cette excursion n'est plus disponible.",
                **base
            )

        today = self.today or business_today()
        if slot.date < today:
            return self._fail(
                PAST_DATE,
                "Impossible de réserver pour une date passée.",
                slot_date=slot.date,
                **base
            )

        counts = await self.availability_service.confirmed_participant_counts(slot.id)
        available = max(0, remaining_capacity(slot.max_participants, counts))
        if available < participants_count:
            return self._fail(
                INSUFFICIENT_SPOTS,
                f"Seulement {available} place(s) disponible(s) pour ce créneau.",
                available_spots=available,
                **base
            )

        if not await self._guide_has_open_slot(excursion.guide_id, slot.date):
            return self._fail(
                GUIDE_UNAVAILABLE,
                "Le guide n'est pas disponible à cette date.",
                available_spots=available,
                **base
            )

        return BookingValidationResult(
            is_valid=True,
            available_spots=available,
            slot=slot,
            excursion=excursion,
            slot_id=slot_id,
            requested_participants=participants_count,
            slot_date=slot.date,
        )

    async def _guide_has_open_slot(self, guide_id: UUID, on_date: date) -> bool:
        """Whether any excursion of the guide has an open slot on that day."""
        stmt = (
            select(AvailabilitySlot.id)
            .join(Excursion, Excursion.id == AvailabilitySlot.excursion_id)
            .where(
                Excursion.guide_id == guide_id,
                AvailabilitySlot.date == on_date,
                AvailabilitySlot.is_available.is_(True)
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.first() is not None
