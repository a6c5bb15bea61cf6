"""Excursion router for catalog operations."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_acting_guide_id, get_db
from ..core.exceptions import ValidationError
from ..schemas.common import Money
from ..schemas.excursion import (
    CreateExcursionRequest,
    Excursion,
    GetExcursionRequest,
    ListExcursionsRequest,
    ListExcursionsResponse,
    SetExcursionActiveRequest,
)
from ..services.excursion_service import ExcursionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/excursion", tags=["excursion"])

DB_DEPENDENCY = Depends(get_db)
GUIDE_DEPENDENCY = Depends(get_acting_guide_id)


def convert_excursion_to_schema(excursion_model) -> Excursion:
    """Convert excursion model to schema."""
    return Excursion(
        id=excursion_model.id,
        guide_id=excursion_model.guide_id,
        title=excursion_model.title,
        description=excursion_model.description,
        category=excursion_model.category,
        duration_hours=excursion_model.duration_hours,
        max_participants=excursion_model.max_participants,
        price_per_person=Money(amount=excursion_model.price_per_person, currency=excursion_model.currency),
        meeting_point=excursion_model.meeting_point,
        difficulty_level=excursion_model.difficulty_level,
        is_active=excursion_model.is_active,
        created_at=excursion_model.created_at
    )


@router.post("/create", response_model=Excursion)
async def create_excursion(
    request: CreateExcursionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Publish an excursion owned by the calling guide."""
    if guide_id is None:
        raise ValidationError("Administrators cannot publish excursions without a guide account")

    excursion = await ExcursionService(db).create_excursion(request, guide_id)
    response_data = convert_excursion_to_schema(excursion)

    return JSONResponse(
        status_code=201,
        content=response_data.model_dump(mode="json")
    )


@router.post("/get", response_model=Excursion)
async def get_excursion(
    request: GetExcursionRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Get excursion details."""
    excursion = await ExcursionService(db).get_excursion_by_id_or_raise(request.excursion_id)
    response_data = convert_excursion_to_schema(excursion)

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/list", response_model=ListExcursionsResponse)
async def list_excursions(
    request: ListExcursionsRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """List excursions, active ones only unless asked otherwise."""
    excursions = await ExcursionService(db).list_excursions(request)
    response_data = ListExcursionsResponse(
        items=[convert_excursion_to_schema(excursion) for excursion in excursions]
    )

    logger.info(
        "Excursions listed",
        extra={
            "category": request.category,
            "guide_id": str(request.guide_id) if request.guide_id else None,
            "count": len(response_data.items)
        }
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/set-active", response_model=Excursion)
async def set_excursion_active(
    request: SetExcursionActiveRequest,
    db: AsyncSession = DB_DEPENDENCY,
    guide_id: Optional[UUID] = GUIDE_DEPENDENCY
) -> JSONResponse:
    """Activate or retire one of the guide's excursions."""
    excursion = await ExcursionService(db).set_active(request.excursion_id, request.is_active, guide_id)
    response_data = convert_excursion_to_schema(excursion)

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )
