"""Per-excursion availability updates and overbooking conflict detection."""

import inspect
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.observability import metrics_collector
from ..models.booking import Booking
from ..schemas.conflict import AvailabilityUpdate, BookingConflict, ConflictType
from ..schemas.slot import SlotAvailability
from .availability_service import SLOTS_TABLE, AvailabilityService
from .capacity import remaining_capacity
from .change_feed import ChangeEvent, ChangeEventType, ChangeFeed, Subscription

logger = logging.getLogger(__name__)

BOOKINGS_TABLE = Booking.__tablename__

AvailabilityCallback = Callable[[AvailabilityUpdate], Union[None, Awaitable[None]]]
ConflictCallback = Callable[[BookingConflict], Union[None, Awaitable[None]]]
ConflictKey = Tuple[UUID, ConflictType, Optional[UUID]]


class ListenerHandle:
    """A callback registered for one excursion. ``unsubscribe`` is idempotent."""

    def __init__(self, service: "AvailabilitySyncService", kind: str, excursion_id: UUID, callback: Callable):
        self._service = service
        self.kind = kind
        self.excursion_id = excursion_id
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._service._remove_listener(self)


def _as_uuid(value) -> Optional[UUID]:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


class AvailabilitySyncService:
    """
    Watches the change feed on behalf of excursion subscribers.

    Slot changes are normalized to AvailabilityUpdate and handed to the
    excursion's availability listeners. Booking inserts and updates trigger a
    recount of the slot's confirmed participants; a negative remainder is an
    overbooking and produces an ``insufficient_spots`` conflict, reported once
    per (slot, conflict type, booking).

    One feed subscription per excursion and kind is kept open while that
    excursion has at least one listener.
    """

    def __init__(self, feed: ChangeFeed, session_factory: async_sessionmaker[AsyncSession]):
        self.feed = feed
        self.session_factory = session_factory

        self._availability_listeners: Dict[UUID, Set[ListenerHandle]] = {}
        self._conflict_listeners: Dict[UUID, Set[ListenerHandle]] = {}
        self._slot_feeds: Dict[UUID, Subscription] = {}
        self._booking_feeds: Dict[UUID, Subscription] = {}
        self._conflicts: Dict[ConflictKey, BookingConflict] = {}

    def subscribe_to_availability_updates(self, excursion_id: UUID, callback: AvailabilityCallback) -> ListenerHandle:
        """
        Receive availability updates for every slot of an excursion.

        Returns:
            Handle whose ``unsubscribe`` removes this callback only
        """
        handle = ListenerHandle(self, "availability", excursion_id, callback)
        self._availability_listeners.setdefault(excursion_id, set()).add(handle)

        if excursion_id not in self._slot_feeds:
            self._slot_feeds[excursion_id] = self.feed.subscribe(
                SLOTS_TABLE,
                self._on_slot_change,
                filter=("excursion_id", excursion_id),
            )

        logger.info(
            "Availability listener added",
            extra={
                "excursion_id": str(excursion_id),
                "listeners": len(self._availability_listeners[excursion_id])
            }
        )
        return handle

    def subscribe_to_booking_conflicts(self, excursion_id: UUID, callback: ConflictCallback) -> ListenerHandle:
        """
        Receive conflicts detected on bookings of an excursion.

        Returns:
            Handle whose ``unsubscribe`` removes this callback only
        """
        handle = ListenerHandle(self, "conflict", excursion_id, callback)
        self._conflict_listeners.setdefault(excursion_id, set()).add(handle)

        if excursion_id not in self._booking_feeds:
            self._booking_feeds[excursion_id] = self.feed.subscribe(
                BOOKINGS_TABLE,
                self._on_booking_change,
                filter=("excursion_id", excursion_id),
            )

        logger.info(
            "Conflict listener added",
            extra={
                "excursion_id": str(excursion_id),
                "listeners": len(self._conflict_listeners[excursion_id])
            }
        )
        return handle

    def _remove_listener(self, handle: ListenerHandle) -> None:
        if handle.kind == "availability":
            registry, feeds = self._availability_listeners, self._slot_feeds
        else:
            registry, feeds = self._conflict_listeners, self._booking_feeds

        listeners = registry.get(handle.excursion_id)
        if listeners is None:
            return
        listeners.discard(handle)

        if not listeners:
            del registry[handle.excursion_id]
            subscription = feeds.pop(handle.excursion_id, None)
            if subscription is not None:
                subscription.unsubscribe()
            logger.info(
                "Last listener left, feed subscription closed",
                extra={"excursion_id": str(handle.excursion_id), "kind": handle.kind}
            )

    def listener_count(self, excursion_id: UUID) -> int:
        return (
            len(self._availability_listeners.get(excursion_id, ()))
            + len(self._conflict_listeners.get(excursion_id, ()))
        )

    async def _dispatch(self, handles: Set[ListenerHandle], payload) -> None:
        for handle in list(handles):
            if not handle.active:
                continue
            try:
                result = handle.callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "Sync listener failed",
                    extra={"excursion_id": str(handle.excursion_id), "kind": handle.kind, "error": str(e)},
                    exc_info=True
                )

    async def _on_slot_change(self, event: ChangeEvent) -> None:
        row = event.row
        excursion_id = _as_uuid(row.get("excursion_id"))
        deleted = event.event_type == ChangeEventType.DELETE

        update = AvailabilityUpdate(
            slot_id=_as_uuid(row["id"]),
            excursion_id=excursion_id,
            available_spots=0 if deleted else max(0, row.get("available_spots") or 0),
            is_available=False if deleted else bool(row.get("is_available")),
            timestamp=datetime.now(timezone.utc),
        )
        await self._dispatch(self._availability_listeners.get(excursion_id, set()), update)

    async def _on_booking_change(self, event: ChangeEvent) -> None:
        if event.event_type not in (ChangeEventType.INSERT, ChangeEventType.UPDATE):
            return

        row = event.new
        slot_id = _as_uuid(row.get("slot_id"))
        excursion_id = _as_uuid(row.get("excursion_id"))
        if slot_id is None:
            return

        conflict = await self.detect_overbooking(slot_id, excursion_id, _as_uuid(row.get("id")), row.get("participants_count") or 0)
        if conflict is None:
            return

        if conflict.key in self._conflicts:
            logger.debug("Duplicate conflict suppressed", extra={"slot_id": str(slot_id)})
            return

        self._conflicts[conflict.key] = conflict
        metrics_collector.record_conflict(conflict.conflict_type.value)
        logger.warning(
            "Booking conflict detected",
            extra={
                "slot_id": str(slot_id),
                "booking_id": str(conflict.booking_id),
                "available_spots": conflict.available_spots
            }
        )
        await self._dispatch(self._conflict_listeners.get(excursion_id, set()), conflict)

    async def detect_overbooking(
        self,
        slot_id: UUID,
        excursion_id: UUID,
        booking_id: Optional[UUID],
        requested_participants: int,
    ) -> Optional[BookingConflict]:
        """Recount a slot's confirmed participants; return a conflict when it is over capacity."""
        async with self.session_factory() as session:
            service = AvailabilityService(session)
            slot = await service.get_slot_by_id(slot_id)
            if slot is None:
                return None
            counts = await service.confirmed_participant_counts(slot_id)

        remaining = remaining_capacity(slot.max_participants, counts)
        if remaining >= 0:
            return None

        return BookingConflict(
            slot_id=slot_id,
            excursion_id=excursion_id,
            booking_id=booking_id,
            requested_participants=requested_participants,
            available_spots=remaining,
            conflict_type=ConflictType.INSUFFICIENT_SPOTS,
            message=f"Surbooking détecté: {abs(remaining)} participants en trop",
            detected_at=datetime.now(timezone.utc),
        )

    def list_conflicts(self, excursion_id: Optional[UUID] = None) -> List[BookingConflict]:
        conflicts = list(self._conflicts.values())
        if excursion_id is not None:
            conflicts = [c for c in conflicts if c.excursion_id == excursion_id]
        return sorted(conflicts, key=lambda c: c.detected_at)

    def dismiss_conflict(self, slot_id: UUID, conflict_type: ConflictType, booking_id: Optional[UUID]) -> bool:
        """Forget one conflict. Returns False when it was not active."""
        removed = self._conflicts.pop((slot_id, conflict_type, booking_id), None)
        return removed is not None

    async def resolve_conflicts(self, excursion_id: Optional[UUID] = None) -> List[UUID]:
        """
        Refresh the availability of every conflicted slot, then clear those conflicts.

        Returns:
            Ids of the refreshed slots
        """
        targets = self.list_conflicts(excursion_id)
        slot_ids = list(dict.fromkeys(conflict.slot_id for conflict in targets))

        for slot_id in slot_ids:
            await self.refresh_slot_availability(slot_id)

        for conflict in targets:
            self._conflicts.pop(conflict.key, None)

        logger.info(
            "Conflicts resolved",
            extra={"excursion_id": str(excursion_id), "slots": len(slot_ids), "conflicts": len(targets)}
        )
        return slot_ids

    async def refresh_slot_availability(self, slot_id: UUID) -> None:
        """Recompute a slot's availability; watchers hear about it through the feed."""
        async with self.session_factory() as session:
            await AvailabilityService(session, self.feed).refresh_slot_availability(slot_id)

    async def get_realtime_availability(self, excursion_id: UUID) -> List[SlotAvailability]:
        async with self.session_factory() as session:
            return await AvailabilityService(session).get_realtime_availability(excursion_id)

    def close(self) -> None:
        """Tear down every feed subscription and listener."""
        for subscription in list(self._slot_feeds.values()) + list(self._booking_feeds.values()):
            subscription.unsubscribe()
        for registry in (self._availability_listeners, self._conflict_listeners):
            for handles in registry.values():
                for handle in handles:
                    handle.active = False
            registry.clear()
        self._slot_feeds.clear()
        self._booking_feeds.clear()
        self._conflicts.clear()
        logger.info("Availability sync service closed")
