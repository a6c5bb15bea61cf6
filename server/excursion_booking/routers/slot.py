"""Slot router for availability operations."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_acting_guide_id, get_change_feed, get_db
from ..schemas.slot import (
    CreateSlotRequest,
    ListAvailableSlotsRequest,
    ListSlotsResponse,
    RealtimeAvailabilityRequest,
    RealtimeAvailabilityResponse,
    RefreshSlotRequest,
    Slot,
    ToggleSlotRequest,
    UpdateSlotRequest,
)
from ..services.availability_service import AvailabilityService
from ..services.change_feed import ChangeFeed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/slot", tags=["slot"])

DB_DEPENDENCY = Depends(get_db)
FEED_DEPENDENCY = Depends(get_change_feed)
GUIDE_DEPENDENCY = Depends(get_acting_guide_id)


def _slot_response(slot, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=Slot.model_validate(slot).model_dump(mode="json")
    )


@router.post("/create", response_model=Slot)
async def create_slot(
    request: CreateSlotRequest,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = FEED_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Open a slot on one of the guide's excursions."""
    slot = await AvailabilityService(db, feed).create_slot(request, guide_id)
    return _slot_response(slot, status_code=201)


@router.post("/toggle", response_model=Slot)
async def toggle_slot(
    request: ToggleSlotRequest,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = FEED_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Open or close a slot for booking."""
    slot = await AvailabilityService(db, feed).set_slot_open(request.slot_id, request.is_available, guide_id)
    return _slot_response(slot)


@router.post("/update", response_model=Slot)
async def update_slot(
    request: UpdateSlotRequest,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = FEED_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Change a slot's size or price override."""
    slot = await AvailabilityService(db, feed).update_slot(request, guide_id)
    return _slot_response(slot)


@router.post("/refresh", response_model=Slot)
async def refresh_slot(
    request: RefreshSlotRequest,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = FEED_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Recompute a slot's cached availability from its confirmed bookings."""
    service = AvailabilityService(db, feed)
    slot = await service.get_slot_by_id_or_raise(request.slot_id)
    await service.excursion_service.get_owned_excursion(slot.excursion_id, guide_id)

    slot = await service.refresh_slot_availability(request.slot_id)
    return _slot_response(slot)


@router.post("/list-available", response_model=ListSlotsResponse)
async def list_available_slots(
    request: ListAvailableSlotsRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Bookable slots of an excursion, soonest first."""
    slots = await AvailabilityService(db).get_available_slots(request.excursion_id, on_date=request.date)
    response_data = ListSlotsResponse(items=[Slot.model_validate(slot) for slot in slots])

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/realtime", response_model=RealtimeAvailabilityResponse)
async def realtime_availability(
    request: RealtimeAvailabilityRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Live availability of every slot of an excursion that is not closed or past."""
    slots = await AvailabilityService(db).get_realtime_availability(request.excursion_id)
    response_data = RealtimeAvailabilityResponse(excursion_id=request.excursion_id, slots=slots)

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )
