"""
Notification Routes - in-app notifications for the current user.
"""
from fastapi import APIRouter, Depends
from auth import get_current_user
from models import CurrentUser
from service_modules.notification_service import NotificationService, get_notification_service

router = APIRouter()


@router.get("/api/notifications")
def get_notifications(
    unseen_only: bool = False,
    limit: int = 50,
    user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    """Get notifications for the current user."""
    return {"success": True, "data": service.get_user_notifications(user.id, unseen_only, limit)}


@router.post("/api/notifications/{notification_id}/seen")
def mark_seen(
    notification_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    return {"success": True, "data": service.mark_seen(notification_id, user.id)}
