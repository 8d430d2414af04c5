# Notifications Feature - Router

from fastapi import APIRouter, Depends, Query
from clinic_lab.features.auth.models import Actor
from clinic_lab.features.auth.dependencies import get_current_actor
from clinic_lab.features.notifications.schemas import NotificationListResponse, NotificationResponse
from clinic_lab.features.notifications.service import NotificationService


router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor)
):
    """Latest notifications for the current user, newest first."""
    return await NotificationService.list_for(actor, limit=limit)


# Static route first so "read-all" is not taken for an id
@router.put("/read-all")
async def mark_all_read(actor: Actor = Depends(get_current_actor)):
    """Mark every unread notification of the current user as read."""
    count = await NotificationService.mark_all_read(actor)
    return {"message": "Notifications marked as read", "count": count}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    actor: Actor = Depends(get_current_actor)
):
    """
    Mark one notification as read.

    - **notification_id**: Notification ID
    """
    return await NotificationService.mark_read(notification_id, actor)
