"""
Notification routes
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional

from ...domain.models import NotificationStatus, User
from ...schemas import MarkNotificationsReadRequest
from ...application.notifications import NotificationService
from ..dependencies import get_current_user, get_notification_service, page_size, to_response


router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    status: Optional[NotificationStatus] = Query(None),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Newest first, optionally filtered by status"""
    return to_response(
        await service.list_notifications(current_user, page_size(limit), offset, status)
    )


@router.get("/unread-count")
async def unread_count(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return to_response(await service.unread_count(current_user))


@router.post("/read")
async def mark_read(
    request: MarkNotificationsReadRequest,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return to_response(await service.mark_read(current_user, request.notification_ids))


@router.post("/read-all")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return to_response(await service.mark_all_read(current_user))


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return to_response(await service.delete_one(current_user, notification_id))


@router.delete("")
async def delete_all_notifications(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return to_response(await service.delete_all(current_user))
