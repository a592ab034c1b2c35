from fastapi import APIRouter, Depends, HTTPException, status

from campus_chat.schemas.notification import PushIn
from campus_chat.services.notification_service import NotificationService
from campus_chat.utils.dependencies import get_current_user, get_notification_service


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(current_user: dict = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    items = await service.list_notifications(current_user["_id"])
    return {
        "items": [n.model_dump(mode="json") for n in items],
        "unread_count": sum(1 for n in items if not n.is_read),
    }


@router.post("/read-all")
async def mark_all_read(current_user: dict = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    return {"updated": await service.mark_all_read(current_user["_id"])}


@router.post("/push")
async def send_push(body: PushIn, current_user: dict = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    try:
        sent = await service.send_push(body.user_id, body.title, body.body, body.data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"sent": sent}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, current_user: dict = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    notification = await service.mark_read(notification_id, current_user["_id"])
    return notification.model_dump(mode="json")


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, current_user: dict = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    await service.delete(notification_id, current_user["_id"])
    return {"ok": True}
