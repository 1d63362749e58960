"""Notification endpoints.

Static paths (``/stats``, ``/upcoming``, ``/bulk/delete``) are declared before
the ``/{notification_id}`` routes so they are not captured as ids.
"""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from src.core.config import Constants
from src.domain.create_models import BulkDeleteRequest, NotificationCreate
from src.domain.update_models import NotificationUpdate
from src.interface.dependencies import CurrentUserId, enforce_notification_rate_limit
from src.interface.responses import dump, success_response
from src.services import notification_service


router = APIRouter(prefix="/notifications", tags=["notifications"])

RateLimitedUserId = Annotated[str, Depends(enforce_notification_rate_limit)]


@router.post("")
async def create_notification(payload: NotificationCreate, user_id: RateLimitedUserId) -> JSONResponse:
    notification = await notification_service.create_notification(payload=payload, user_id=user_id)
    return success_response(
        {"data": dump(notification)},
        message="Notification created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/generate-task-notifications")
async def generate_task_notifications(user_id: CurrentUserId) -> JSONResponse:
    """Create reminders one hour before the due date of incomplete tasks."""
    result = await notification_service.generate_task_notifications(user_id=user_id)
    return success_response(
        {"data": dump(result.notifications), "count": result.count},
        message=f"{result.count} notifications generated for incomplete tasks",
    )


@router.get("")
async def list_notifications(
    user_id: CurrentUserId,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=Constants.MAX_PAGE_SIZE)] = Constants.DEFAULT_PAGE_SIZE,
    status_filter: Annotated[Literal["sent", "pending"] | None, Query(alias="status")] = None,
) -> JSONResponse:
    result = await notification_service.list_notifications(
        user_id=user_id, page=page, limit=limit, status=status_filter
    )
    return success_response({"data": dump(result)})


@router.get("/stats")
async def get_stats(user_id: CurrentUserId) -> JSONResponse:
    stats = await notification_service.get_stats(user_id=user_id)
    return success_response({"data": dump(stats)})


@router.get("/upcoming")
async def get_upcoming(
    user_id: CurrentUserId,
    limit: Annotated[int, Query(ge=1, le=Constants.MAX_UPCOMING_LIMIT)] = Constants.DEFAULT_UPCOMING_LIMIT,
) -> JSONResponse:
    notifications = await notification_service.get_upcoming(user_id=user_id, limit=limit)
    return success_response({"notifications": dump(notifications)})


@router.delete("/bulk/delete")
async def bulk_delete(payload: BulkDeleteRequest, user_id: CurrentUserId) -> JSONResponse:
    result = await notification_service.bulk_delete(notification_ids=payload.notification_ids, user_id=user_id)
    return success_response(
        {"deletedCount": result.deleted_count},
        message=f"{result.deleted_count} notification(s) deleted successfully",
    )


@router.get("/{notification_id}")
async def get_notification(notification_id: str, user_id: CurrentUserId) -> JSONResponse:
    notification = await notification_service.get_notification(notification_id=notification_id, user_id=user_id)
    return success_response({"data": dump(notification)})


@router.put("/{notification_id}")
async def update_notification(
    notification_id: str,
    payload: NotificationUpdate,
    user_id: CurrentUserId,
) -> JSONResponse:
    notification = await notification_service.update_notification(
        notification_id=notification_id, payload=payload, user_id=user_id
    )
    return success_response({"data": dump(notification)}, message="Notification updated successfully")


@router.patch("/{notification_id}/sent")
async def mark_as_sent(notification_id: str, user_id: CurrentUserId) -> JSONResponse:
    notification = await notification_service.mark_as_sent(notification_id=notification_id, user_id=user_id)
    return success_response({"data": dump(notification)}, message="Notification marked as sent")


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, user_id: CurrentUserId) -> JSONResponse:
    await notification_service.delete_notification(notification_id=notification_id, user_id=user_id)
    return success_response(message="Notification deleted successfully")
