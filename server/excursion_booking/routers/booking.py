"""Booking router for booking operations."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.dependencies import (
    get_acting_guide_id,
    get_booking_service,
    get_current_user,
    require_roles,
)
from ..core.exceptions import ProblemDetailsException, ValidationError
from ..models.profile import UserRole
from ..schemas.auth import CurrentUser
from ..schemas.booking import (
    Booking,
    BookingIdRequest,
    BookingStats,
    BookingStatsRequest,
    BookingValidationResponse,
    CheckInRequest,
    CreateBookingRequest,
    ListBookingsResponse,
    ValidateBookingRequest,
)
from ..schemas.common import Money
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

BOOKING_SERVICE_DEPENDENCY = Depends(get_booking_service)
USER_DEPENDENCY = Depends(get_current_user)
CLIENT_DEPENDENCY = Depends(require_roles(UserRole.CLIENT))
GUIDE_DEPENDENCY = Depends(get_acting_guide_id)


def convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking(
        id=booking_model.id,
        code=booking_model.code,
        excursion_id=booking_model.excursion_id,
        slot_id=booking_model.slot_id,
        client_id=booking_model.client_id,
        tour_operator_id=booking_model.tour_operator_id,
        client_name=booking_model.client_name,
        client_email=booking_model.client_email,
        participants_count=booking_model.participants_count,
        total=Money(amount=booking_model.total_amount, currency=booking_model.currency),
        commission=Money(amount=booking_model.commission_amount, currency=booking_model.currency),
        status=booking_model.status,
        channel=booking_model.channel,
        special_requests=booking_model.special_requests,
        booking_date=booking_model.booking_date,
        cancellation_date=booking_model.cancellation_date,
        is_checked_in=booking_model.is_checked_in,
        checkin_time=booking_model.checkin_time,
        created_at=booking_model.created_at
    )


def _booking_response(booking_model, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=convert_booking_to_schema(booking_model).model_dump(mode="json")
    )


@router.post("/create", response_model=Booking)
async def create_booking(
    request: CreateBookingRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    user: CurrentUser = CLIENT_DEPENDENCY
) -> JSONResponse:
    """
    Create a pending booking for the calling client.

    The request is validated exactly as ``/validate`` does; a failed check is
    returned as a problem document carrying the validator's error code.
    """
    try:
        booking = await booking_service.create_booking(request, user)
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={
                "slot_id": str(request.slot_id),
                "participants_count": request.participants_count,
                "user_id": str(user.id),
                "error": str(e)
            },
            exc_info=True
        )
        raise

    return _booking_response(booking, status_code=201)


@router.post("/validate", response_model=BookingValidationResponse)
async def validate_booking(
    request: ValidateBookingRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY
) -> JSONResponse:
    """Run the booking checks without creating anything."""
    result = await booking_service.validate_booking(
        request.excursion_id, request.slot_id, request.participants_count
    )
    response_data = BookingValidationResponse(
        is_valid=result.is_valid,
        error=result.error,
        error_code=result.error_code,
        available_spots=result.available_spots
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/confirm", response_model=Booking)
async def confirm_booking(
    request: BookingIdRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Confirm a pending booking on one of the guide's excursions, consuming capacity."""
    booking = await booking_service.get_booking_by_id_or_raise(request.booking_id)
    await booking_service.availability_service.excursion_service.get_owned_excursion(
        booking.excursion_id, guide_id
    )

    try:
        booking = await booking_service.confirm_booking(request.booking_id)
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in booking confirmation",
            extra={"booking_id": str(request.booking_id), "error": str(e)},
            exc_info=True
        )
        raise

    return _booking_response(booking)


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: BookingIdRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    user: CurrentUser = USER_DEPENDENCY
) -> JSONResponse:
    """Cancel a booking the caller has access to and release its spots."""
    booking = await booking_service.get_booking_by_id_or_raise(request.booking_id)
    await booking_service.ensure_access(booking, user)

    try:
        booking = await booking_service.cancel_booking(request.booking_id)
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in booking cancellation",
            extra={"booking_id": str(request.booking_id), "error": str(e)},
            exc_info=True
        )
        raise

    return _booking_response(booking)


@router.post("/get", response_model=Booking)
async def get_booking(
    request: BookingIdRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    user: CurrentUser = USER_DEPENDENCY
) -> JSONResponse:
    """Get booking details."""
    booking = await booking_service.get_booking_by_id_or_raise(request.booking_id)
    await booking_service.ensure_access(booking, user)

    return _booking_response(booking)


@router.post("/check-in", response_model=Booking)
async def check_in(
    request: CheckInRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Check a client in with the code printed on their booking."""
    booking = await booking_service.check_in(request.code, guide_id)
    return _booking_response(booking)


@router.post("/stats", response_model=BookingStats)
async def booking_stats(
    request: BookingStatsRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Booking counts and confirmed revenue over a guide's excursions."""
    target = request.guide_id if guide_id is None else guide_id
    if target is None:
        raise ValidationError("guide_id is required for administrators")

    stats = await booking_service.get_booking_stats(target)
    return JSONResponse(
        status_code=200,
        content=stats.model_dump(mode="json")
    )


@router.post("/list", response_model=ListBookingsResponse)
async def list_my_bookings(
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    user: CurrentUser = USER_DEPENDENCY
) -> JSONResponse:
    """The calling client's bookings, newest first."""
    bookings = await booking_service.list_client_bookings(user.id)
    response_data = ListBookingsResponse(items=[convert_booking_to_schema(b) for b in bookings])

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/list-guide", response_model=ListBookingsResponse)
async def list_guide_bookings(
    request: BookingStatsRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Bookings across a guide's excursions, by slot date."""
    target = request.guide_id if guide_id is None else guide_id
    if target is None:
        raise ValidationError("guide_id is required for administrators")

    bookings = await booking_service.list_guide_bookings(target)
    response_data = ListBookingsResponse(items=[convert_booking_to_schema(b) for b in bookings])

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )
