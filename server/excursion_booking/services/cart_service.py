"""Tour operator cart, checkout and sales figures."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import db_operation
from ..core.exceptions import NotFoundError, ProblemDetailsException
from ..models.booking import Booking, BookingChannel, BookingStatus
from ..models.cart import CartItem
from ..models.profile import TourOperator
from ..schemas.booking import CreateResellerBookingRequest
from ..schemas.cart import AddCartItemRequest, CheckoutFailure, CommissionQuote, SalesSummary
from ..schemas.common import Money
from .booking_service import BookingService
from .commission import CommissionPolicy

logger = logging.getLogger(__name__)

SALES_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.PENDING)


class CheckoutResult:
    """Bookings created by a checkout and the items that failed."""

    def __init__(self):
        self.bookings: list[Booking] = []
        self.failures: list[CheckoutFailure] = []

    @property
    def total_revenue(self) -> int:
        return sum(booking.total_amount for booking in self.bookings)

    @property
    def total_commission(self) -> int:
        return sum(booking.commission_amount for booking in self.bookings)


class CartService:
    """Service for the reseller cart."""

    def __init__(self, db: AsyncSession, booking_service: Optional[BookingService] = None):
        self.db = db
        self.booking_service = booking_service or BookingService(db)

    async def add_item(self, request: AddCartItemRequest, tour_operator: TourOperator) -> CartItem:
        """Put a slot in the operator's cart; nothing is validated until checkout."""
        async with db_operation(self.db, "add cart item"):
            item = CartItem(
                tour_operator_id=tour_operator.id,
                excursion_id=request.excursion_id,
                slot_id=request.slot_id,
                participants_count=request.participants_count,
                client_name=request.client_name,
                client_email=request.client_email,
                special_requests=request.special_requests,
            )
            self.db.add(item)
            await self.db.commit()

        logger.info(
            "Cart item added",
            extra={
                "cart_item_id": str(item.id),
                "tour_operator_id": str(tour_operator.id),
                "slot_id": str(request.slot_id),
                "participants_count": request.participants_count
            }
        )
        return item

    async def list_items(self, tour_operator_id: UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.tour_operator_id == tour_operator_id)
            .order_by(CartItem.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def remove_item(self, item_id: UUID, tour_operator_id: UUID) -> None:
        """
        Raises:
            NotFoundError: If the item is not in this operator's cart
        """
        async with db_operation(self.db, "remove cart item"):
            result = await self.db.execute(
                delete(CartItem).where(
                    CartItem.id == item_id,
                    CartItem.tour_operator_id == tour_operator_id
                )
            )
            if result.rowcount == 0:
                raise NotFoundError(resource_type="cart_item", resource_id=str(item_id))
            await self.db.commit()

        logger.info("Cart item removed", extra={"cart_item_id": str(item_id)})

    async def clear(self, tour_operator_id: UUID) -> int:
        """Empty the operator's cart. Returns the number of items removed."""
        async with db_operation(self.db, "clear cart"):
            result = await self.db.execute(
                delete(CartItem).where(CartItem.tour_operator_id == tour_operator_id)
            )
            await self.db.commit()

        logger.info(
            "Cart cleared",
            extra={"tour_operator_id": str(tour_operator_id), "removed": result.rowcount}
        )
        return result.rowcount

    async def checkout(self, tour_operator: TourOperator) -> CheckoutResult:
        """
        Book every item of the cart on the reseller channel.

        Items that fail are reported and the rest still go through. The cart
        is emptied once at least one booking was created.
        """
        operator_id = tour_operator.id
        items = await self.list_items(operator_id)
        requests = [
            (
                item.id,
                CreateResellerBookingRequest(
                    excursion_id=item.excursion_id,
                    slot_id=item.slot_id,
                    participants_count=item.participants_count,
                    special_requests=item.special_requests,
                    client_name=item.client_name,
                    client_email=item.client_email,
                ),
            )
            for item in items
        ]

        outcome = CheckoutResult()
        for item_id, request in requests:
            try:
                booking = await self.booking_service.create_reseller_booking(request, tour_operator)
            except ProblemDetailsException as e:
                logger.info(
                    "Cart item could not be booked",
                    extra={"cart_item_id": str(item_id), "code": e.code, "error": e.message}
                )
                outcome.failures.append(CheckoutFailure(item_id=item_id, error=e.message, error_code=e.code))
                continue
            outcome.bookings.append(booking)

        if outcome.bookings:
            await self.clear(operator_id)

        logger.info(
            "Cart checked out",
            extra={
                "tour_operator_id": str(operator_id),
                "bookings": len(outcome.bookings),
                "failures": len(outcome.failures),
                "total_revenue": outcome.total_revenue,
                "total_commission": outcome.total_commission
            }
        )
        return outcome

    def quote(self, price_per_person: int, participants: int, currency: Optional[str] = None) -> CommissionQuote:
        """Split of a reseller sale between guide, operator and platform."""
        currency = currency or settings.default_currency
        breakdown = CommissionPolicy(BookingChannel.RESELLER).breakdown(price_per_person, participants)
        return CommissionQuote(
            total=Money(amount=breakdown.total, currency=currency),
            guide_share=Money(amount=breakdown.guide_share, currency=currency),
            operator_share=Money(amount=breakdown.operator_share, currency=currency),
            platform_share=Money(amount=breakdown.platform_share, currency=currency),
        )

    async def sales_summary(self, tour_operator_id: UUID) -> SalesSummary:
        """Revenue and commission over the operator's confirmed, completed and pending bookings."""
        stmt = select(
            func.count(Booking.id),
            func.coalesce(func.sum(Booking.total_amount), 0),
            func.coalesce(func.sum(Booking.commission_amount), 0),
            func.count(func.distinct(Booking.client_email)),
        ).where(
            Booking.tour_operator_id == tour_operator_id,
            Booking.status.in_(SALES_STATUSES)
        )
        result = await self.db.execute(stmt)
        count, revenue, commission, clients = result.one()

        currency = settings.default_currency
        return SalesSummary(
            total_bookings=count,
            total_revenue=Money(amount=int(revenue), currency=currency),
            total_commission=Money(amount=int(commission), currency=currency),
            unique_clients=clients,
        )
