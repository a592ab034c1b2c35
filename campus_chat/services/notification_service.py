import logging
from typing import Any, Dict, List, Optional

from campus_chat.core.config import settings
from campus_chat.repositories.device_repository import DeviceRepository
from campus_chat.repositories.notification_repository import NotificationRepository
from campus_chat.schemas.chat import RealtimeEvent
from campus_chat.schemas.notification import NotificationOut
from campus_chat.services.errors import NotificationNotFoundError
from campus_chat.utils.realtime_bus import notification_channel, publish_event


logger = logging.getLogger(__name__)


class NotificationService:

    def __init__(self, notification_repo: NotificationRepository, device_repo: DeviceRepository, bus, push) -> None:
        self._notification_repo = notification_repo
        self._device_repo = device_repo
        self._bus = bus
        self._push = push

    async def list_notifications(self, user_id: str, limit: Optional[int] = None) -> List[NotificationOut]:
        rows = await self._notification_repo.list_for_user(user_id, limit=limit or settings.NOTIFICATION_LIST_LIMIT)
        return [NotificationOut.from_document(r) for r in rows]

    async def create(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        action_url: Optional[str] = None,
    ) -> NotificationOut:
        row = await self._notification_repo.create(user_id, notification_type, title, body, data, action_url)
        notification = NotificationOut.from_document(row)
        await self._publish(user_id, "INSERT", new=notification.model_dump(mode="json"))
        return notification

    async def mark_read(self, notification_id: str, user_id: str) -> NotificationOut:
        row = await self._notification_repo.mark_read(notification_id, user_id)
        if row is None:
            raise NotificationNotFoundError(notification_id)
        notification = NotificationOut.from_document(row)
        await self._publish(user_id, "UPDATE", new=notification.model_dump(mode="json"))
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        rows = await self._notification_repo.mark_all_read(user_id)
        for row in rows:
            await self._publish(user_id, "UPDATE", new=NotificationOut.from_document(row).model_dump(mode="json"))
        return len(rows)

    async def delete(self, notification_id: str, user_id: str) -> None:
        row = await self._notification_repo.delete(notification_id, user_id)
        if row is None:
            raise NotificationNotFoundError(notification_id)
        await self._publish(user_id, "DELETE", old={"id": row["_id"]})

    async def send_push(self, user_id: str, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> int:
        """Push to every registered device of the user and record an in-app notification.

        Returns the number of device tokens targeted. Nothing is recorded when
        the user has no registered device.
        """
        if not user_id or not title or not body:
            raise ValueError("Missing required fields: user_id, title, body")
        tokens = [t["token"] for t in await self._device_repo.get_tokens(user_id)]
        if not tokens:
            logger.info("No push tokens registered for user=%s", user_id)
            return 0
        await self._push.send(tokens, title, body, data)
        await self.create(user_id, (data or {}).get("type") or "system", title, body, data)
        return len(tokens)

    async def _publish(self, user_id: str, event: str, new: Optional[Dict[str, Any]] = None, old: Optional[Dict[str, Any]] = None) -> None:
        await publish_event(
            self._bus,
            notification_channel(user_id),
            RealtimeEvent(event=event, table="notifications", new=new, old=old),
        )
