"""Tests for the booking lifecycle."""

from datetime import timedelta
from uuid import uuid4

import pytest
from conftest import add_booking, add_slot
from sqlalchemy import select

from excursion_booking.core.exceptions import (
    AuthorizationError,
    CapacityExceededError,
    NotFoundError,
    PastDateError,
    StateConflictError,
)
from excursion_booking.models import (
    AvailabilitySlot,
    Booking,
    BookingChannel,
    BookingStatus,
    Guide,
    Notification,
    NotificationType,
    Profile,
    UserRole,
)
from excursion_booking.schemas.auth import CurrentUser
from excursion_booking.schemas.booking import CreateBookingRequest, CreateResellerBookingRequest
from excursion_booking.services.booking_service import BookingService
from excursion_booking.services.change_feed import ChangeEventType, ChangeFeed
from excursion_booking.services.email_client import EmailClient
from excursion_booking.services.notification_service import NotificationService


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def booking_service(test_session, feed, today):
    return BookingService(
        test_session,
        feed=feed,
        notifier=NotificationService(test_session, EmailClient()),
        today=today,
    )


async def fresh(session, model, id_):
    return await session.get(model, id_, populate_existing=True)


async def notifications_for(session, user_id):
    result = await session.execute(select(Notification).where(Notification.user_id == user_id))
    return list(result.scalars())


@pytest.mark.asyncio
async def test_create_booking(test_session, booking_service, excursion, slot, client_user, guide_profile):
    request = CreateBookingRequest(
        excursion_id=excursion.id,
        slot_id=slot.id,
        participants_count=3,
        special_requests="Un enfant de 8 ans",
    )

    booking = await booking_service.create_booking(request, client_user)

    assert booking.status == BookingStatus.PENDING
    assert booking.channel == BookingChannel.DIRECT
    assert len(booking.code) == 8
    assert booking.code.isalnum() and booking.code.upper() == booking.code
    assert booking.total_amount == 15000
    assert booking.commission_amount == 1500
    assert booking.currency == "EUR"
    assert booking.booking_date == slot.date
    assert booking.client_id == client_user.id
    assert booking.client_name == "Marie Joseph"
    assert booking.client_email == client_user.email

    # Pending bookings do not consume capacity
    stored_slot = await fresh(test_session, AvailabilitySlot, slot.id)
    assert stored_slot.available_spots == 10

    profile = await fresh(test_session, Profile, client_user.id)
    assert profile.role == UserRole.CLIENT

    client_notes = await notifications_for(test_session, client_user.id)
    guide_notes = await notifications_for(test_session, guide_profile.id)
    assert [n.type for n in client_notes] == [NotificationType.BOOKING_CREATED]
    assert booking.code in client_notes[0].message
    assert [n.type for n in guide_notes] == [NotificationType.BOOKING_CREATED]
    assert "3 participant(s)" in guide_notes[0].message


@pytest.mark.asyncio
async def test_create_booking_publishes_changes(booking_service, feed, excursion, slot, client_user):
    events = []
    feed.subscribe("bookings", events.append)
    feed.subscribe("availability_slots", events.append)

    booking = await booking_service.create_booking(
        CreateBookingRequest(excursion_id=excursion.id, slot_id=slot.id, participants_count=1),
        client_user,
    )

    assert [(e.table, e.event_type) for e in events] == [
        ("bookings", ChangeEventType.INSERT),
        ("availability_slots", ChangeEventType.UPDATE),
    ]
    assert events[0].new["id"] == booking.id
    assert events[1].new["id"] == slot.id


@pytest.mark.asyncio
async def test_slot_price_override_applies(test_session, booking_service, excursion, client_user, today):
    special = await add_slot(test_session, excursion, today + timedelta(days=3), price_override=4000)

    booking = await booking_service.create_booking(
        CreateBookingRequest(excursion_id=excursion.id, slot_id=special.id, participants_count=2),
        client_user,
    )

    assert booking.total_amount == 8000
    assert booking.commission_amount == 800


@pytest.mark.asyncio
async def test_create_booking_rejects_past_slot(test_session, booking_service, excursion, client_user, today):
    past = await add_slot(test_session, excursion, today - timedelta(days=2))

    with pytest.raises(PastDateError):
        await booking_service.create_booking(
            CreateBookingRequest(excursion_id=excursion.id, slot_id=past.id, participants_count=1),
            client_user,
        )

    result = await test_session.execute(select(Booking))
    assert result.scalars().first() is None


@pytest.mark.asyncio
async def test_create_reseller_booking(booking_service, excursion, slot, tour_operator):
    request = CreateResellerBookingRequest(
        excursion_id=excursion.id,
        slot_id=slot.id,
        participants_count=2,
        client_name="Famille Martin",
        client_email="martin@example.com",
    )

    booking = await booking_service.create_reseller_booking(request, tour_operator)

    assert booking.channel == BookingChannel.RESELLER
    assert booking.client_id is None
    assert booking.tour_operator_id == tour_operator.id
    assert booking.client_name == "Famille Martin"
    assert booking.total_amount == 10000
    # 20% operator share of 5000, per person
    assert booking.commission_amount == 2000


@pytest.mark.asyncio
async def test_confirm_booking_consumes_capacity(test_session, booking_service, excursion, slot, client_user):
    booking = await booking_service.create_booking(
        CreateBookingRequest(excursion_id=excursion.id, slot_id=slot.id, participants_count=4),
        client_user,
    )

    confirmed = await booking_service.confirm_booking(booking.id)

    assert confirmed.status == BookingStatus.CONFIRMED
    stored_slot = await fresh(test_session, AvailabilitySlot, slot.id)
    assert stored_slot.available_spots == 6
    assert stored_slot.is_available is True

    notes = await notifications_for(test_session, client_user.id)
    assert NotificationType.BOOKING_CONFIRMED in {n.type for n in notes}


@pytest.mark.asyncio
async def test_confirm_filling_slot_marks_it_unavailable(test_session, booking_service, slot):
    booking = await add_booking(test_session, slot, 10, status=BookingStatus.PENDING)

    await booking_service.confirm_booking(booking.id)

    stored_slot = await fresh(test_session, AvailabilitySlot, slot.id)
    assert stored_slot.available_spots == 0
    assert stored_slot.is_available is False


@pytest.mark.asyncio
async def test_confirm_beyond_capacity_fails_without_changing_cache(test_session, booking_service, slot):
    slot_id = slot.id
    first = await add_booking(test_session, slot, 6, status=BookingStatus.PENDING)
    second = await add_booking(test_session, slot, 5, status=BookingStatus.PENDING)
    first_id, second_id = first.id, second.id

    await booking_service.confirm_booking(first_id)

    with pytest.raises(CapacityExceededError) as exc_info:
        await booking_service.confirm_booking(second_id)

    assert exc_info.value.code == "insufficient_spots"
    assert exc_info.value.problem_details["available_spots"] == 4

    stored_slot = await fresh(test_session, AvailabilitySlot, slot_id)
    stored_second = await fresh(test_session, Booking, second_id)
    assert stored_slot.available_spots == 4
    assert stored_second.status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_confirm_twice_is_a_state_conflict(booking_service, test_session, slot):
    slot_id = slot.id
    booking = await add_booking(test_session, slot, 2, status=BookingStatus.PENDING)
    booking_id = booking.id
    await booking_service.confirm_booking(booking_id)

    with pytest.raises(StateConflictError) as exc_info:
        await booking_service.confirm_booking(booking_id)

    assert exc_info.value.message == "Cette réservation est déjà confirmée."
    assert str(exc_info.value) == "Cette réservation est déjà confirmée."
    stored_slot = await fresh(test_session, AvailabilitySlot, slot_id)
    assert stored_slot.available_spots == 8


@pytest.mark.asyncio
async def test_confirm_cancelled_booking_is_rejected(booking_service, test_session, slot):
    booking = await add_booking(test_session, slot, 2, status=BookingStatus.CANCELLED)

    with pytest.raises(StateConflictError):
        await booking_service.confirm_booking(booking.id)


@pytest.mark.asyncio
async def test_confirm_unknown_booking(booking_service):
    with pytest.raises(NotFoundError):
        await booking_service.confirm_booking(uuid4())


@pytest.mark.asyncio
async def test_cancel_confirmed_booking_releases_spots(test_session, booking_service, slot, today):
    booking = await add_booking(test_session, slot, 3, status=BookingStatus.PENDING)
    await booking_service.confirm_booking(booking.id)

    cancelled = await booking_service.cancel_booking(booking.id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancellation_date == today
    stored_slot = await fresh(test_session, AvailabilitySlot, slot.id)
    assert stored_slot.available_spots == 10


@pytest.mark.asyncio
async def test_cancel_twice_is_a_state_conflict(test_session, booking_service, slot):
    slot_id = slot.id
    booking = await add_booking(test_session, slot, 1, status=BookingStatus.PENDING)
    booking_id = booking.id
    await add_booking(test_session, slot, 3, status=BookingStatus.CONFIRMED)
    await booking_service.cancel_booking(booking_id)

    with pytest.raises(StateConflictError) as exc_info:
        await booking_service.cancel_booking(booking_id)

    assert exc_info.value.message == "Cette réservation est déjà annulée."
    stored_slot = await fresh(test_session, AvailabilitySlot, slot_id)
    assert stored_slot.available_spots == 7


@pytest.mark.asyncio
async def test_cancel_refreshes_a_stale_cache(test_session, booking_service, slot):
    booking = await add_booking(test_session, slot, 2, status=BookingStatus.PENDING)
    slot.available_spots = 1
    await test_session.commit()

    await booking_service.cancel_booking(booking.id)

    stored_slot = await fresh(test_session, AvailabilitySlot, slot.id)
    assert stored_slot.available_spots == 10


@pytest.mark.asyncio
async def test_check_in(test_session, booking_service, guide, slot, client_user):
    booking = await add_booking(test_session, slot, 2, status=BookingStatus.CONFIRMED, client_id=client_user.id)

    checked_in = await booking_service.check_in(booking.code.lower(), guide.id)

    assert checked_in.is_checked_in is True
    assert checked_in.checkin_time is not None
    assert checked_in.checkin_guide_id == guide.id

    with pytest.raises(StateConflictError) as exc_info:
        await booking_service.check_in(booking.code, guide.id)
    assert exc_info.value.message == "Ce client a déjà été enregistré."


@pytest.mark.asyncio
async def test_check_in_requires_confirmed_booking(test_session, booking_service, guide, slot):
    booking = await add_booking(test_session, slot, 2, status=BookingStatus.PENDING)

    with pytest.raises(StateConflictError):
        await booking_service.check_in(booking.code, guide.id)


@pytest.mark.asyncio
async def test_check_in_by_another_guide_is_forbidden(test_session, booking_service, slot):
    other_profile = Profile(id=uuid4(), email="autre@example.com", role=UserRole.GUIDE)
    test_session.add(other_profile)
    other_guide = Guide(user_id=other_profile.id)
    test_session.add(other_guide)
    await test_session.commit()
    booking = await add_booking(test_session, slot, 2, status=BookingStatus.CONFIRMED)

    with pytest.raises(AuthorizationError):
        await booking_service.check_in(booking.code, other_guide.id)


@pytest.mark.asyncio
async def test_check_in_unknown_code(booking_service, guide):
    with pytest.raises(NotFoundError):
        await booking_service.check_in("ZZZZ9999", guide.id)


@pytest.mark.asyncio
async def test_booking_stats(test_session, booking_service, guide, slot):
    await add_booking(test_session, slot, 2, status=BookingStatus.CONFIRMED)
    await add_booking(test_session, slot, 3, status=BookingStatus.CONFIRMED)
    await add_booking(test_session, slot, 1, status=BookingStatus.PENDING)
    await add_booking(test_session, slot, 4, status=BookingStatus.CANCELLED)

    stats = await booking_service.get_booking_stats(guide.id)

    assert stats.total == 4
    assert stats.confirmed == 2
    assert stats.pending == 1
    assert stats.cancelled == 1
    assert stats.revenue.amount == 25000
    assert stats.revenue.currency == "EUR"


@pytest.mark.asyncio
async def test_booking_stats_for_guide_without_bookings(booking_service):
    stats = await booking_service.get_booking_stats(uuid4())

    assert stats.total == 0
    assert stats.revenue.amount == 0


@pytest.mark.asyncio
async def test_list_guide_bookings_filters_by_status(test_session, booking_service, guide, slot):
    confirmed = await add_booking(test_session, slot, 2, status=BookingStatus.CONFIRMED)
    await add_booking(test_session, slot, 1, status=BookingStatus.PENDING)

    everything = await booking_service.list_guide_bookings(guide.id)
    only_confirmed = await booking_service.list_guide_bookings(guide.id, BookingStatus.CONFIRMED)

    assert len(everything) == 2
    assert [b.id for b in only_confirmed] == [confirmed.id]


@pytest.mark.asyncio
async def test_ensure_access(test_session, booking_service, slot, client_user, guide_profile, tour_operator, operator_profile):
    own = await add_booking(test_session, slot, 1, client_id=client_user.id)
    resold = await add_booking(
        test_session, slot, 1, tour_operator_id=tour_operator.id, channel=BookingChannel.RESELLER
    )

    await booking_service.ensure_access(own, client_user)
    await booking_service.ensure_access(own, CurrentUser(id=guide_profile.id, roles=["guide"]))
    await booking_service.ensure_access(resold, CurrentUser(id=operator_profile.id, roles=["tour_operator"]))
    await booking_service.ensure_access(resold, CurrentUser(id=uuid4(), roles=["admin"]))

    stranger = CurrentUser(id=uuid4(), roles=["client"])
    with pytest.raises(AuthorizationError):
        await booking_service.ensure_access(own, stranger)
    with pytest.raises(AuthorizationError):
        await booking_service.ensure_access(resold, client_user)
