"""Tests for the tour operator cart."""

from datetime import timedelta
from uuid import uuid4

import pytest
from conftest import add_booking, add_slot

from excursion_booking.core.exceptions import NotFoundError
from excursion_booking.models import BookingChannel, BookingStatus
from excursion_booking.schemas.cart import AddCartItemRequest
from excursion_booking.services.booking_service import BookingService
from excursion_booking.services.cart_service import CartService


@pytest.fixture
def cart_service(test_session, today):
    return CartService(test_session, BookingService(test_session, today=today))


def item_request(excursion, slot, participants=2, email="famille@example.com") -> AddCartItemRequest:
    return AddCartItemRequest(
        excursion_id=excursion.id,
        slot_id=slot.id,
        participants_count=participants,
        client_name="Famille Martin",
        client_email=email,
    )


@pytest.mark.asyncio
async def test_add_list_remove(cart_service, tour_operator, excursion, slot):
    first = await cart_service.add_item(item_request(excursion, slot), tour_operator)
    second = await cart_service.add_item(item_request(excursion, slot, 1), tour_operator)

    items = await cart_service.list_items(tour_operator.id)
    assert [item.id for item in items] == [first.id, second.id]

    await cart_service.remove_item(first.id, tour_operator.id)
    assert [item.id for item in await cart_service.list_items(tour_operator.id)] == [second.id]


@pytest.mark.asyncio
async def test_remove_item_of_another_operator(cart_service, tour_operator, excursion, slot):
    item = await cart_service.add_item(item_request(excursion, slot), tour_operator)

    with pytest.raises(NotFoundError):
        await cart_service.remove_item(item.id, uuid4())


@pytest.mark.asyncio
async def test_clear(cart_service, tour_operator, excursion, slot):
    await cart_service.add_item(item_request(excursion, slot), tour_operator)
    await cart_service.add_item(item_request(excursion, slot), tour_operator)

    assert await cart_service.clear(tour_operator.id) == 2
    assert await cart_service.list_items(tour_operator.id) == []


@pytest.mark.asyncio
async def test_checkout_books_what_it_can(test_session, cart_service, tour_operator, excursion, slot, today):
    past = await add_slot(test_session, excursion, today - timedelta(days=3))
    await cart_service.add_item(item_request(excursion, slot, 2), tour_operator)
    failing = await cart_service.add_item(item_request(excursion, past, 1), tour_operator)

    result = await cart_service.checkout(tour_operator)

    assert len(result.bookings) == 1
    booking = result.bookings[0]
    assert booking.channel == BookingChannel.RESELLER
    assert booking.tour_operator_id == tour_operator.id
    assert booking.status == BookingStatus.PENDING
    assert result.total_revenue == 10000
    assert result.total_commission == 2000

    assert len(result.failures) == 1
    assert result.failures[0].item_id == failing.id
    assert result.failures[0].error_code == "past_date"
    assert result.failures[0].error == "Impossible de réserver pour une date passée."

    assert await cart_service.list_items(tour_operator.id) == []


@pytest.mark.asyncio
async def test_failed_checkout_keeps_the_cart(test_session, cart_service, tour_operator, excursion, today):
    past = await add_slot(test_session, excursion, today - timedelta(days=1))
    await cart_service.add_item(item_request(excursion, past), tour_operator)

    result = await cart_service.checkout(tour_operator)

    assert result.bookings == []
    assert len(result.failures) == 1
    assert len(await cart_service.list_items(tour_operator.id)) == 1


def test_quote(cart_service):
    quote = cart_service.quote(5000, 3)

    assert quote.total.amount == 15000
    assert quote.guide_share.amount == 9750
    assert quote.operator_share.amount == 3000
    assert quote.platform_share.amount == 2250
    assert quote.total.currency == "EUR"


@pytest.mark.asyncio
async def test_sales_summary(test_session, cart_service, tour_operator, slot):
    def sale(participants, status, email):
        return add_booking(
            test_session,
            slot,
            participants,
            status=status,
            tour_operator_id=tour_operator.id,
            channel=BookingChannel.RESELLER,
            client_email=email,
        )

    await sale(2, BookingStatus.CONFIRMED, "a@example.com")
    await sale(1, BookingStatus.PENDING, "a@example.com")
    await sale(3, BookingStatus.COMPLETED, "b@example.com")
    await sale(4, BookingStatus.CANCELLED, "c@example.com")
    # Another operator's sale
    await add_booking(test_session, slot, 5, tour_operator_id=uuid4(), channel=BookingChannel.RESELLER)

    summary = await cart_service.sales_summary(tour_operator.id)

    assert summary.total_bookings == 3
    assert summary.total_revenue.amount == 30000
    assert summary.total_commission.amount == 3000
    assert summary.unique_clients == 2
