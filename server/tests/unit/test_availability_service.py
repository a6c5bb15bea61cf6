"""Tests for slot availability and slot management."""

from datetime import time, timedelta
from uuid import uuid4

import pytest
from conftest import add_booking, add_slot

from excursion_booking.core.exceptions import AuthorizationError, NotFoundError, PastDateError
from excursion_booking.models import AvailabilitySlot, BookingStatus
from excursion_booking.schemas.slot import CreateSlotRequest, UpdateSlotRequest
from excursion_booking.services.availability_service import AvailabilityService
from excursion_booking.services.change_feed import ChangeEventType, ChangeFeed


async def fresh_slot(session, slot_id):
    return await session.get(AvailabilitySlot, slot_id, populate_existing=True)


@pytest.mark.asyncio
async def test_create_slot(test_session, excursion, guide, today):
    feed = ChangeFeed()
    events = []
    feed.subscribe("availability_slots", events.append)
    service = AvailabilityService(test_session, feed)

    slot = await service.create_slot(
        CreateSlotRequest(
            excursion_id=excursion.id,
            date=today + timedelta(days=2),
            start_time=time(14, 30),
            max_participants=6,
            price_override=4500,
        ),
        guide.id,
        today=today,
    )

    assert slot.available_spots == 6
    assert slot.is_available is True
    assert slot.is_closed is False
    assert slot.price_override == 4500
    assert [e.event_type for e in events] == [ChangeEventType.INSERT]


@pytest.mark.asyncio
async def test_create_slot_in_the_past(test_session, excursion, guide, today):
    service = AvailabilityService(test_session)

    with pytest.raises(PastDateError):
        await service.create_slot(
            CreateSlotRequest(
                excursion_id=excursion.id,
                date=today - timedelta(days=1),
                start_time=time(9),
                max_participants=4,
            ),
            guide.id,
            today=today,
        )


@pytest.mark.asyncio
async def test_create_slot_on_another_guides_excursion(test_session, excursion, today):
    service = AvailabilityService(test_session)

    with pytest.raises(AuthorizationError):
        await service.create_slot(
            CreateSlotRequest(
                excursion_id=excursion.id,
                date=today + timedelta(days=1),
                start_time=time(9),
                max_participants=4,
            ),
            uuid4(),
            today=today,
        )


@pytest.mark.asyncio
async def test_refresh_repairs_stale_cache(test_session, slot):
    await add_booking(test_session, slot, 3, status=BookingStatus.CONFIRMED)
    await add_booking(test_session, slot, 4, status=BookingStatus.PENDING)
    feed = ChangeFeed()
    events = []
    feed.subscribe("availability_slots", events.append, filter=("id", slot.id))

    refreshed = await AvailabilityService(test_session, feed).refresh_slot_availability(slot.id)

    assert refreshed.available_spots == 7
    assert refreshed.is_available is True
    assert len(events) == 1
    assert events[0].old["available_spots"] == 10
    assert events[0].new["available_spots"] == 7


@pytest.mark.asyncio
async def test_refresh_of_overbooked_slot_clamps_at_zero(test_session, slot):
    await add_booking(test_session, slot, 8, status=BookingStatus.CONFIRMED)
    await add_booking(test_session, slot, 5, status=BookingStatus.CONFIRMED)

    refreshed = await AvailabilityService(test_session).refresh_slot_availability(slot.id)

    assert refreshed.available_spots == 0
    assert refreshed.is_available is False


@pytest.mark.asyncio
async def test_refresh_unknown_slot(test_session):
    with pytest.raises(NotFoundError):
        await AvailabilityService(test_session).refresh_slot_availability(uuid4())


@pytest.mark.asyncio
async def test_closing_and_reopening_a_slot(test_session, guide, slot):
    service = AvailabilityService(test_session)

    closed = await service.set_slot_open(slot.id, False, guide.id)
    assert closed.is_closed is True
    assert closed.is_available is False

    reopened = await service.set_slot_open(slot.id, True, guide.id)
    assert reopened.is_closed is False
    assert reopened.is_available is True


@pytest.mark.asyncio
async def test_reopening_a_full_slot_keeps_it_unavailable(test_session, guide, slot):
    await add_booking(test_session, slot, 10, status=BookingStatus.CONFIRMED)
    service = AvailabilityService(test_session)

    reopened = await service.set_slot_open(slot.id, True, guide.id)

    assert reopened.is_closed is False
    assert reopened.is_available is False
    assert reopened.available_spots == 0


@pytest.mark.asyncio
async def test_update_slot(test_session, guide, excursion, today):
    special = await add_slot(test_session, excursion, today + timedelta(days=4), price_override=3000)
    await add_booking(test_session, special, 4, status=BookingStatus.CONFIRMED)
    service = AvailabilityService(test_session)

    updated = await service.update_slot(
        UpdateSlotRequest(slot_id=special.id, max_participants=6, clear_price_override=True),
        guide.id,
    )

    assert updated.max_participants == 6
    assert updated.price_override is None
    assert updated.available_spots == 2


@pytest.mark.asyncio
async def test_update_slot_by_another_guide(test_session, slot):
    with pytest.raises(AuthorizationError):
        await AvailabilityService(test_session).update_slot(
            UpdateSlotRequest(slot_id=slot.id, max_participants=4),
            uuid4(),
        )


@pytest.mark.asyncio
async def test_available_slots_use_live_counts(test_session, excursion, slot, today):
    later = await add_slot(test_session, excursion, today + timedelta(days=9), max_participants=4)
    full = await add_slot(test_session, excursion, today + timedelta(days=8), max_participants=2)
    past = await add_slot(test_session, excursion, today - timedelta(days=1))
    await add_booking(test_session, slot, 3, status=BookingStatus.CONFIRMED)
    await add_booking(test_session, full, 2, status=BookingStatus.CONFIRMED)
    # Cache says full, live count says otherwise
    later.available_spots = 0
    await test_session.commit()

    slots = await AvailabilityService(test_session).get_available_slots(excursion.id, today=today)

    assert [s.id for s in slots] == [slot.id, later.id]
    assert slots[0].available_spots == 7
    assert slots[1].available_spots == 4
    assert past.id not in {s.id for s in slots}

    # Live counts are not written back
    stored = await fresh_slot(test_session, later.id)
    assert stored.available_spots == 0


@pytest.mark.asyncio
async def test_available_slots_on_one_date(test_session, excursion, slot, today):
    await add_slot(test_session, excursion, today + timedelta(days=12))

    slots = await AvailabilityService(test_session).get_available_slots(
        excursion.id, on_date=slot.date, today=today
    )

    assert [s.id for s in slots] == [slot.id]


@pytest.mark.asyncio
async def test_realtime_availability(test_session, excursion, slot, today):
    full = await add_slot(test_session, excursion, today + timedelta(days=8), max_participants=2)
    closed = await add_slot(test_session, excursion, today + timedelta(days=10))
    closed.is_closed = True
    closed.is_available = False
    await test_session.commit()
    await add_booking(test_session, full, 2, status=BookingStatus.CONFIRMED)

    live = await AvailabilityService(test_session).get_realtime_availability(excursion.id, today=today)

    by_slot = {entry.slot_id: entry for entry in live}
    assert set(by_slot) == {slot.id, full.id}
    assert by_slot[slot.id].available_spots == 10
    assert by_slot[full.id].available_spots == 0
    assert by_slot[full.id].is_available is False
