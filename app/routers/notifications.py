from fastapi import APIRouter, Depends

from app.models.user_model import Actor
from app.routers.dependencies import get_current_actor, get_dispatcher
from app.schemas.notification_schema import list_serialize_notifications, serialize_notification
from app.services.notifications import NotificationDispatcher

router = APIRouter()


@router.get("/")
async def get_my_notifications(
    actor: Actor = Depends(get_current_actor),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return {
        "message": "Notifications retrieved successfully",
        "data": list_serialize_notifications(dispatcher.list_for_user(actor)),
    }


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    actor: Actor = Depends(get_current_actor),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = dispatcher.mark_read(notification_id, actor)
    return {"message": "Notification marked as read", "data": serialize_notification(notification)}
