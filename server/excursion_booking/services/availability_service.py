"""Slot availability: live capacity, cache refreshes, and slot management."""

import logging
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import db_operation, is_postgresql
from ..core.exceptions import NotFoundError, PastDateError
from ..core.observability import metrics_collector
from ..models.availability_slot import AvailabilitySlot
from ..models.booking import Booking, BookingStatus
from ..schemas.slot import CreateSlotRequest, SlotAvailability as SlotAvailabilitySchema, UpdateSlotRequest
from .capacity import SlotAvailability, calculate_availability
from .change_feed import ChangeFeed, ChangeEventType, row_to_dict
from .excursion_service import ExcursionService

logger = logging.getLogger(__name__)

SLOTS_TABLE = AvailabilitySlot.__tablename__


def business_today(tz_name: Optional[str] = None) -> date:
    """Current calendar day in the business time zone."""
    return datetime.now(ZoneInfo(tz_name or settings.business_timezone)).date()


class AvailabilityService:
    """Service for slot availability and slot management."""

    def __init__(self, db: AsyncSession, feed: Optional[ChangeFeed] = None):
        self.db = db
        self.feed = feed
        self.excursion_service = ExcursionService(db)

    async def get_slot_by_id(self, slot_id: UUID) -> AvailabilitySlot | None:
        """Get slot by ID."""
        stmt = select(AvailabilitySlot).where(AvailabilitySlot.id == slot_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_slot_by_id_or_raise(self, slot_id: UUID) -> AvailabilitySlot:
        """Get slot by ID or raise NotFoundError."""
        slot = await self.get_slot_by_id(slot_id)
        if not slot:
            logger.warning("Slot not found", extra={"slot_id": str(slot_id)})
            raise NotFoundError(resource_type="slot", resource_id=str(slot_id))
        return slot

    async def get_slot_with_lock(self, slot_id: UUID) -> AvailabilitySlot:
        """
        Get slot by ID with a transaction-scoped advisory lock.

        The lock serializes capacity changes on one slot and is released when
        the transaction ends. SQLite already serializes writers, so no lock is
        taken there.

        Raises:
            NotFoundError: If slot not found
        """
        if is_postgresql(self.db):
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:slot_id))"),
                {"slot_id": str(slot_id)}
            )
            logger.debug("Acquired advisory lock for slot", extra={"slot_id": str(slot_id)})

        return await self.get_slot_by_id_or_raise(slot_id)

    async def confirmed_participant_counts(self, slot_id: UUID) -> list[int]:
        """Participant counts of every confirmed booking on a slot, read live."""
        stmt = select(Booking.participants_count).where(
            Booking.slot_id == slot_id,
            Booking.status == BookingStatus.CONFIRMED
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def confirmed_participants_by_slot(self, slot_ids: list[UUID]) -> dict[UUID, int]:
        """Confirmed participant totals for several slots in one query."""
        if not slot_ids:
            return {}
        stmt = (
            select(Booking.slot_id, func.coalesce(func.sum(Booking.participants_count), 0))
            .where(
                Booking.slot_id.in_(slot_ids),
                Booking.status == BookingStatus.CONFIRMED
            )
            .group_by(Booking.slot_id)
        )
        result = await self.db.execute(stmt)
        return {slot_id: int(total) for slot_id, total in result.all()}

    async def calculate_slot_availability(self, slot: AvailabilitySlot) -> SlotAvailability:
        """Live availability of a slot; the cached fields are not consulted."""
        counts = await self.confirmed_participant_counts(slot.id)
        return calculate_availability(slot.max_participants, counts)

    async def apply_refresh(self, slot: AvailabilitySlot) -> SlotAvailability:
        """
        Rewrite a slot's cached availability from its confirmed bookings.

        Flushes but does not commit, so callers can fold the refresh into
        their own transaction.
        """
        await self.db.flush()
        availability = await self.calculate_slot_availability(slot)

        slot.available_spots = availability.available_spots
        slot.is_available = availability.is_available and not slot.is_closed
        await self.db.flush()

        metrics_collector.set_slot_available_spots(str(slot.id), availability.available_spots)
        return availability

    async def refresh_slot_availability(self, slot_id: UUID) -> AvailabilitySlot:
        """
        Recompute and store a slot's availability, then notify watchers.

        Args:
            slot_id: Slot to refresh

        Returns:
            The refreshed slot

        Raises:
            NotFoundError: If slot not found
        """
        async with db_operation(self.db, "refresh slot availability"):
            slot = await self.get_slot_with_lock(slot_id)
            before = row_to_dict(slot)
            availability = await self.apply_refresh(slot)
            await self.db.commit()

        logger.info(
            "Slot availability refreshed",
            extra={
                "slot_id": str(slot_id),
                "available_spots": availability.available_spots,
                "is_available": slot.is_available
            }
        )

        await self.publish_slot_change(slot, old=before)
        return slot

    async def publish_slot_change(
        self,
        slot: AvailabilitySlot,
        old: Optional[dict] = None,
        event_type: ChangeEventType = ChangeEventType.UPDATE,
    ) -> None:
        if self.feed is None:
            return
        await self.feed.publish_change(SLOTS_TABLE, event_type, new=row_to_dict(slot), old=old)

    async def get_available_slots(
        self,
        excursion_id: UUID,
        on_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> list[AvailabilitySlot]:
        """
        Bookable slots of an excursion, soonest first.

        Slots must be open, dated today or later, and have spots left once
        their confirmed bookings are counted. The returned slots carry the live
        spot count in ``available_spots``; nothing is written back.
        """
        today = today or business_today()

        stmt = select(AvailabilitySlot).where(
            AvailabilitySlot.excursion_id == excursion_id,
            AvailabilitySlot.is_available.is_(True),
            AvailabilitySlot.date >= today
        )
        if on_date is not None:
            stmt = stmt.where(AvailabilitySlot.date == on_date)
        stmt = stmt.order_by(AvailabilitySlot.date, AvailabilitySlot.start_time)

        result = await self.db.execute(stmt)
        slots = list(result.scalars())
        confirmed = await self.confirmed_participants_by_slot([slot.id for slot in slots])

        bookable = []
        for slot in slots:
            availability = calculate_availability(slot.max_participants, [confirmed.get(slot.id, 0)])
            if availability.available_spots > 0:
                # Detached from the session so the live count is never flushed
                self.db.expunge(slot)
                slot.available_spots = availability.available_spots
                bookable.append(slot)

        logger.info(
            "Available slots listed",
            extra={
                "excursion_id": str(excursion_id),
                "date": on_date.isoformat() if on_date else None,
                "open_slots": len(slots),
                "bookable_slots": len(bookable)
            }
        )
        return bookable

    async def get_realtime_availability(
        self,
        excursion_id: UUID,
        today: Optional[date] = None,
    ) -> list[SlotAvailabilitySchema]:
        """Live availability of every slot of an excursion that is not closed and not past."""
        today = today or business_today()

        stmt = (
            select(AvailabilitySlot)
            .where(
                AvailabilitySlot.excursion_id == excursion_id,
                AvailabilitySlot.is_closed.is_(False),
                AvailabilitySlot.date >= today
            )
            .order_by(AvailabilitySlot.date, AvailabilitySlot.start_time)
        )
        result = await self.db.execute(stmt)
        slots = list(result.scalars())
        confirmed = await self.confirmed_participants_by_slot([slot.id for slot in slots])
        computed_at = datetime.now(timezone.utc)

        live = []
        for slot in slots:
            availability = calculate_availability(slot.max_participants, [confirmed.get(slot.id, 0)])
            live.append(SlotAvailabilitySchema(
                slot_id=slot.id,
                date=slot.date,
                start_time=slot.start_time,
                max_participants=slot.max_participants,
                available_spots=availability.available_spots,
                is_available=availability.is_available,
                computed_at=computed_at,
            ))
        return live

    async def create_slot(
        self,
        request: CreateSlotRequest,
        guide_id: Optional[UUID],
        today: Optional[date] = None,
    ) -> AvailabilitySlot:
        """
        Open a new slot on an excursion the guide owns.

        Args:
            request: Slot creation request
            guide_id: Calling guide, or None for an administrator
            today: Override of the business calendar day

        Raises:
            NotFoundError: If the excursion does not exist
            AuthorizationError: If the guide does not own the excursion
            PastDateError: If the slot date is before today
        """
        today = today or business_today()
        if request.date < today:
            raise PastDateError(request.date.isoformat(), detail="Impossible de créer un créneau à une date passée.")

        async with db_operation(self.db, "create slot"):
            await self.excursion_service.get_owned_excursion(request.excursion_id, guide_id)

            slot = AvailabilitySlot(
                excursion_id=request.excursion_id,
                date=request.date,
                start_time=request.start_time,
                max_participants=request.max_participants,
                price_override=request.price_override,
                is_available=True,
                is_closed=False,
                available_spots=request.max_participants,
            )
            self.db.add(slot)
            await self.db.commit()

        metrics_collector.set_slot_available_spots(str(slot.id), slot.available_spots)
        logger.info(
            "Slot created successfully",
            extra={
                "slot_id": str(slot.id),
                "excursion_id": str(request.excursion_id),
                "date": request.date.isoformat(),
                "max_participants": request.max_participants
            }
        )

        await self.publish_slot_change(slot, event_type=ChangeEventType.INSERT)
        return slot

    async def set_slot_open(self, slot_id: UUID, is_available: bool, guide_id: Optional[UUID]) -> AvailabilitySlot:
        """Open or close a slot for booking; reopening only takes effect while spots remain."""
        async with db_operation(self.db, "toggle slot"):
            slot = await self._get_owned_slot(slot_id, guide_id)
            before = row_to_dict(slot)
            slot.is_closed = not is_available
            await self.apply_refresh(slot)
            await self.db.commit()

        logger.info(
            "Slot availability toggled",
            extra={"slot_id": str(slot_id), "is_closed": slot.is_closed, "is_available": slot.is_available}
        )

        await self.publish_slot_change(slot, old=before)
        return slot

    async def update_slot(self, request: UpdateSlotRequest, guide_id: Optional[UUID]) -> AvailabilitySlot:
        """Change a slot's size or price override, then refresh its availability."""
        async with db_operation(self.db, "update slot"):
            slot = await self._get_owned_slot(request.slot_id, guide_id)
            before = row_to_dict(slot)

            if request.max_participants is not None:
                slot.max_participants = request.max_participants
            if request.clear_price_override:
                slot.price_override = None
            elif request.price_override is not None:
                slot.price_override = request.price_override

            await self.apply_refresh(slot)
            await self.db.commit()

        logger.info(
            "Slot updated",
            extra={
                "slot_id": str(request.slot_id),
                "max_participants": slot.max_participants,
                "price_override": slot.price_override,
                "available_spots": slot.available_spots
            }
        )

        await self.publish_slot_change(slot, old=before)
        return slot

    async def _get_owned_slot(self, slot_id: UUID, guide_id: Optional[UUID]) -> AvailabilitySlot:
        slot = await self.get_slot_with_lock(slot_id)
        await self.excursion_service.get_owned_excursion(slot.excursion_id, guide_id)
        return slot
