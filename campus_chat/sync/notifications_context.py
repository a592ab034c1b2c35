import asyncio
import logging
from typing import Any, List, Optional

from campus_chat.schemas.notification import NotificationOut
from campus_chat.services.notification_service import NotificationService
from campus_chat.utils.realtime_bus import notification_channel, parse_event


logger = logging.getLogger(__name__)


class NotificationsContext:
    """In-app notification list for the signed-in user, kept live over the bus."""

    def __init__(self, service: NotificationService, bus) -> None:
        self._service = service
        self._bus = bus
        self.user_id: Optional[str] = None
        self.notifications: List[NotificationOut] = []
        self.loading = False
        self._subscription: Any = None
        self._task: Optional[asyncio.Task] = None

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.is_read)

    def unread_count_by_type(self, kind: str) -> int:
        return sum(1 for n in self.notifications if not n.is_read and n.type == kind)

    async def set_user(self, user_id: Optional[str]) -> None:
        """Follow an auth state change: sign-in loads and subscribes, sign-out clears."""
        await self._unsubscribe()
        self.user_id = user_id
        if user_id is None:
            self.notifications = []
            return
        await self.load_notifications()
        self._subscription = await self._bus.subscribe(notification_channel(user_id), self._on_event)
        self._task = asyncio.create_task(self._subscription.run())

    async def load_notifications(self) -> None:
        if not self.user_id:
            return
        self.loading = True
        try:
            self.notifications = await self._service.list_notifications(self.user_id)
        except Exception:
            logger.exception("Error loading notifications for user=%s", self.user_id)
        finally:
            self.loading = False

    async def mark_as_read(self, notification_id: str) -> None:
        if not self.user_id:
            return
        try:
            await self._service.mark_read(notification_id, self.user_id)
        except Exception:
            logger.exception("Error marking notification %s as read", notification_id)
            return
        self.notifications = [
            n.model_copy(update={"is_read": True}) if n.id == notification_id else n
            for n in self.notifications
        ]

    async def mark_all_as_read(self) -> None:
        if not self.user_id:
            return
        try:
            await self._service.mark_all_read(self.user_id)
        except Exception:
            logger.exception("Error marking all notifications as read")
            return
        self.notifications = [n.model_copy(update={"is_read": True}) for n in self.notifications]

    async def delete_notification(self, notification_id: str) -> None:
        # removed locally first; the server delete is best effort
        self.notifications = [n for n in self.notifications if n.id != notification_id]
        if not self.user_id:
            return
        try:
            await self._service.delete(notification_id, self.user_id)
        except Exception:
            logger.exception("Error deleting notification %s", notification_id)

    async def close(self) -> None:
        await self._unsubscribe()

    async def _unsubscribe(self) -> None:
        if self._subscription is not None:
            await self._subscription.cancel()
            self._subscription = None
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

    async def _on_event(self, raw: str) -> None:
        event = parse_event(raw)
        if event is None or event.table != "notifications":
            return
        if event.event == "INSERT" and event.new:
            incoming = NotificationOut.from_document(event.new)
            if all(n.id != incoming.id for n in self.notifications):
                self.notifications = [incoming] + self.notifications
        elif event.event == "UPDATE" and event.new:
            updated = NotificationOut.from_document(event.new)
            self.notifications = [updated if n.id == updated.id else n for n in self.notifications]
        elif event.event == "DELETE" and event.old:
            gone = event.old.get("id")
            self.notifications = [n for n in self.notifications if n.id != gone]
