from fastapi import APIRouter, Depends
from typing import List
from models.user import UserModel
from routes.deps import get_current_user, get_services
from services.container import Services

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=List[dict])
async def get_notifications(
    unread_only: bool = False,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Non-expired notifications for the current user, newest first."""
    notifications = await services.notifier.list_for(current_user.id, unread_only=unread_only)
    return [n.model_dump() for n in notifications]


@router.get("/unread-count")
async def get_unread_count(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    count = await services.notifier.unread_count(current_user.id)
    return {"count": count}


@router.put("/viewed")
async def mark_all_viewed(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Mark every notification the user has seen in the dropdown as viewed."""
    updated = await services.notifier.mark_all_viewed(current_user.id)
    return {"message": "Notifications marked as viewed", "updated": updated}


@router.post("/mark-all-read")
async def mark_all_read(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    updated = await services.notifier.mark_all_read(current_user.id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.put("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    notification = await services.notifier.mark_read(current_user.id, notification_id)
    return notification.model_dump()


@router.put("/{notification_id}/viewed")
async def mark_as_viewed(
    notification_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    notification = await services.notifier.mark_viewed(current_user.id, notification_id)
    return notification.model_dump()


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    await services.notifier.delete(current_user.id, notification_id)
    return {"message": "Notification deleted"}
