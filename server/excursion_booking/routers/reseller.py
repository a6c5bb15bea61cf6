"""Reseller router: bookings placed by tour operators, their cart and sales."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..core.dependencies import get_booking_service, get_cart_service, get_current_tour_operator
from ..models.profile import TourOperator
from ..schemas.booking import Booking, CreateResellerBookingRequest
from ..schemas.cart import (
    AddCartItemRequest,
    Cart,
    CartItem,
    CheckoutResponse,
    CommissionQuote,
    QuoteRequest,
    RemoveCartItemRequest,
    SalesSummary,
)
from ..schemas.common import Money, SuccessResponse
from ..services.booking_service import BookingService
from ..services.cart_service import CartService
from .booking import convert_booking_to_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/reseller", tags=["reseller"])

BOOKING_SERVICE_DEPENDENCY = Depends(get_booking_service)
CART_SERVICE_DEPENDENCY = Depends(get_cart_service)
OPERATOR_DEPENDENCY = Depends(get_current_tour_operator)


@router.post("/booking/create", response_model=Booking)
async def create_reseller_booking(
    request: CreateResellerBookingRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    operator: TourOperator = OPERATOR_DEPENDENCY
) -> JSONResponse:
    """Book a slot for one of the operator's clients."""
    booking = await booking_service.create_reseller_booking(request, operator)

    return JSONResponse(
        status_code=201,
        content=convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/cart/add", response_model=CartItem)
async def add_cart_item(
    request: AddCartItemRequest,
    cart_service: CartService = CART_SERVICE_DEPENDENCY,
    operator: TourOperator = OPERATOR_DEPENDENCY
) -> JSONResponse:
    item = await cart_service.add_item(request, operator)

    return JSONResponse(
        status_code=201,
        content=CartItem.model_validate(item).model_dump(mode="json")
    )


@router.post("/cart/list", response_model=Cart)
async def list_cart(
    cart_service: CartService = CART_SERVICE_DEPENDENCY,
    operator: TourOperator = OPERATOR_DEPENDENCY
) -> JSONResponse:
    items = await cart_service.list_items(operator.id)
    response_data = Cart(items=[CartItem.model_validate(item) for item in items])

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/cart/remove", response_model=SuccessResponse)
async def remove_cart_item(
    request: RemoveCartItemRequest,
    cart_service: CartService = CART_SERVICE_DEPENDENCY,
    operator: TourOperator = OPERATOR_DEPENDENCY
) -> JSONResponse:
    await cart_service.remove_item(request.item_id, operator.id)

    return JSONResponse(
        status_code=200,
        content=SuccessResponse(message="Article retiré du panier.").model_dump(mode="json")
    )


@router.post("/cart/clear", response_model=SuccessResponse)
async def clear_cart(
    cart_service: CartService = CART_SERVICE_DEPENDENCY,
    operator: TourOperator = OPERATOR_DEPENDENCY
) -> JSONResponse:
    removed = await cart_service.clear(operator.id)

    return JSONResponse(
        status_code=200,
        content=SuccessResponse(message=f"{removed} article(s) retiré(s) du panier.").model_dump(mode="json")
    )


@router.post("/cart/checkout", response_model=CheckoutResponse)
async def checkout_cart(
    cart_service: CartService = CART_SERVICE_DEPENDENCY,
    operator: TourOperator = OPERATOR_DEPENDENCY
) -> JSONResponse:
    """
    Book every item in the cart.

    Items that cannot be booked are listed under ``failures``; the others
    are booked regardless.
    """
    outcome = await cart_service.checkout(operator)

    currency = settings.default_currency
    response_data = CheckoutResponse(
        bookings=[convert_booking_to_schema(booking) for booking in outcome.bookings],
        failures=outcome.failures,
        total_revenue=Money(amount=outcome.total_revenue, currency=currency),
        total_commission=Money(amount=outcome.total_commission, currency=currency)
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/quote", response_model=CommissionQuote)
async def commission_quote(
    request: QuoteRequest,
    cart_service: CartService = CART_SERVICE_DEPENDENCY,
    operator: TourOperator = OPERATOR_DEPENDENCY
) -> JSONResponse:
    """Guide, operator and platform shares for a price and party size."""
    quote = cart_service.quote(request.price_per_person, request.participants_count)

    return JSONResponse(
        status_code=200,
        content=quote.model_dump(mode="json")
    )


@router.post("/sales", response_model=SalesSummary)
async def sales_summary(
    cart_service: CartService = CART_SERVICE_DEPENDENCY,
    operator: TourOperator = OPERATOR_DEPENDENCY
) -> JSONResponse:
    summary = await cart_service.sales_summary(operator.id)

    logger.info(
        "Sales summary requested",
        extra={"tour_operator_id": str(operator.id), "total_bookings": summary.total_bookings}
    )

    return JSONResponse(
        status_code=200,
        content=summary.model_dump(mode="json")
    )
