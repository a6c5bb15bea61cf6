"""Conflict router: overbookings detected on the change feed."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_acting_guide_id, get_db, get_sync_service
from ..core.exceptions import NotFoundError, ValidationError
from ..schemas.common import SuccessResponse
from ..schemas.conflict import (
    DismissConflictRequest,
    ListConflictsRequest,
    ListConflictsResponse,
    ResolveConflictsResponse,
)
from ..services.excursion_service import ExcursionService
from ..services.sync_service import AvailabilitySyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/conflict", tags=["conflict"])

DB_DEPENDENCY = Depends(get_db)
SYNC_DEPENDENCY = Depends(get_sync_service)
GUIDE_DEPENDENCY = Depends(get_acting_guide_id)


async def _check_scope(db: AsyncSession, excursion_id: Optional[UUID], guide_id: Optional[UUID]) -> None:
    """Guides only see their own excursions; administrators may omit the excursion."""
    if excursion_id is not None:
        await ExcursionService(db).get_owned_excursion(excursion_id, guide_id)
    elif guide_id is not None:
        raise ValidationError("excursion_id is required")


@router.post("/list", response_model=ListConflictsResponse)
async def list_conflicts(
    request: ListConflictsRequest,
    db: AsyncSession = DB_DEPENDENCY,
    sync: AvailabilitySyncService = SYNC_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Active conflicts, oldest first."""
    await _check_scope(db, request.excursion_id, guide_id)
    response_data = ListConflictsResponse(items=sync.list_conflicts(request.excursion_id))

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/dismiss", response_model=SuccessResponse)
async def dismiss_conflict(
    request: DismissConflictRequest,
    db: AsyncSession = DB_DEPENDENCY,
    sync: AvailabilitySyncService = SYNC_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Forget one conflict without touching the slot."""
    conflict = next(
        (
            c for c in sync.list_conflicts()
            if c.key == (request.slot_id, request.conflict_type, request.booking_id)
        ),
        None
    )
    if conflict is None:
        raise NotFoundError(resource_type="conflict", resource_id=str(request.slot_id))

    await _check_scope(db, conflict.excursion_id, guide_id)
    sync.dismiss_conflict(request.slot_id, request.conflict_type, request.booking_id)

    logger.info(
        "Conflict dismissed",
        extra={"slot_id": str(request.slot_id), "booking_id": str(request.booking_id)}
    )

    return JSONResponse(
        status_code=200,
        content=SuccessResponse(message="Conflit ignoré.").model_dump(mode="json")
    )


@router.post("/resolve", response_model=ResolveConflictsResponse)
async def resolve_conflicts(
    request: ListConflictsRequest,
    db: AsyncSession = DB_DEPENDENCY,
    sync: AvailabilitySyncService = SYNC_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Refresh every conflicted slot's availability and clear the conflicts."""
    await _check_scope(db, request.excursion_id, guide_id)
    slot_ids = await sync.resolve_conflicts(request.excursion_id)

    return JSONResponse(
        status_code=200,
        content=ResolveConflictsResponse(refreshed_slot_ids=slot_ids).model_dump(mode="json")
    )
