"""Notification router for the caller's inbox."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.dependencies import get_current_user, get_notification_service
from ..schemas.auth import CurrentUser
from ..schemas.common import SuccessResponse
from ..schemas.notification import (
    ListNotificationsRequest,
    ListNotificationsResponse,
    MarkReadRequest,
    Notification,
    UnreadCount,
)
from ..services.notification_service import NotificationService

router = APIRouter(prefix="/v1/notification", tags=["notification"])

NOTIFICATION_SERVICE_DEPENDENCY = Depends(get_notification_service)
USER_DEPENDENCY = Depends(get_current_user)


@router.post("/list", response_model=ListNotificationsResponse)
async def list_notifications(
    request: ListNotificationsRequest,
    notifications: NotificationService = NOTIFICATION_SERVICE_DEPENDENCY,
    user: CurrentUser = USER_DEPENDENCY
) -> JSONResponse:
    """The caller's notifications, newest first."""
    items = await notifications.list_notifications(user.id, unread_only=request.unread_only, limit=request.limit)
    response_data = ListNotificationsResponse(
        items=[Notification.model_validate(item) for item in items],
        unread_count=await notifications.unread_count(user.id)
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/unread-count", response_model=UnreadCount)
async def unread_count(
    notifications: NotificationService = NOTIFICATION_SERVICE_DEPENDENCY,
    user: CurrentUser = USER_DEPENDENCY
) -> JSONResponse:
    count = await notifications.unread_count(user.id)

    return JSONResponse(
        status_code=200,
        content=UnreadCount(unread_count=count).model_dump(mode="json")
    )


@router.post("/mark-read", response_model=Notification)
async def mark_read(
    request: MarkReadRequest,
    notifications: NotificationService = NOTIFICATION_SERVICE_DEPENDENCY,
    user: CurrentUser = USER_DEPENDENCY
) -> JSONResponse:
    notification = await notifications.mark_as_read(request.notification_id, user.id)

    return JSONResponse(
        status_code=200,
        content=Notification.model_validate(notification).model_dump(mode="json")
    )


@router.post("/mark-all-read", response_model=SuccessResponse)
async def mark_all_read(
    notifications: NotificationService = NOTIFICATION_SERVICE_DEPENDENCY,
    user: CurrentUser = USER_DEPENDENCY
) -> JSONResponse:
    updated = await notifications.mark_all_as_read(user.id)

    return JSONResponse(
        status_code=200,
        content=SuccessResponse(message=f"{updated} notification(s) marquée(s) comme lue(s).").model_dump(mode="json")
    )
