"""Client-side state for direct messaging.

Holds what a chat screen renders: the conversation list, a per-conversation
message cache and the set of users currently typing. Realtime events for the
active conversation are merged into that state as they arrive.
"""

import asyncio
import functools
import logging
from typing import Any, Dict, List, Optional

from campus_chat.schemas.chat import ConversationView, MessageOut
from campus_chat.services.chat_service import ChatService
from campus_chat.sync.notices import Notice, Notifier, log_notice
from campus_chat.utils.realtime_bus import message_channel, parse_event, typing_channel


logger = logging.getLogger(__name__)


class ChatContext:

    def __init__(self, service: ChatService, bus, notify: Optional[Notifier] = None) -> None:
        self._service = service
        self._bus = bus
        self._notify = notify or log_notice
        self.conversations: List[ConversationView] = []
        self.messages: Dict[str, List[MessageOut]] = {}
        self.typing_users: Dict[str, List[str]] = {}
        self.active_conversation_id: Optional[str] = None
        self._subscriptions: List[Any] = []
        self._tasks: List[asyncio.Task] = []

    async def __aenter__(self) -> "ChatContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def load_conversations(self, user_id: str) -> None:
        try:
            self.conversations = await self._service.list_conversations(user_id)
        except Exception:
            logger.exception("Error loading conversations for user=%s", user_id)
            self.conversations = []
            self._notify(Notice("error", "Error", "Failed to load conversations"))

    async def load_messages(self, conversation_id: str) -> None:
        try:
            history = await self._service.get_history(conversation_id)
        except Exception:
            logger.exception("Error loading messages for conversation=%s", conversation_id)
            return
        self.messages[conversation_id] = history

    async def send_message(self, conversation_id: str, content: str, sender_id: str) -> Optional[MessageOut]:
        try:
            message = await self._service.send_message(conversation_id, sender_id, content)
        except Exception:
            logger.exception("Error sending message to conversation=%s", conversation_id)
            self._notify(Notice("error", "Error", "Failed to send message"))
            return None
        self._merge_insert(conversation_id, message)
        self._notify(Notice("success", "Message sent"))
        return message

    async def mark_as_read(self, conversation_id: str, user_id: str) -> int:
        try:
            updated = await self._service.mark_read(conversation_id, user_id)
        except Exception:
            logger.exception("Error marking messages as read in conversation=%s", conversation_id)
            return 0
        self.conversations = [
            c.model_copy(update={"unread_count": 0}) if c.id == conversation_id else c
            for c in self.conversations
        ]
        return updated

    async def create_conversation(self, participant1_id: str, participant2_id: str) -> Optional[str]:
        try:
            convo = await self._service.get_or_create_conversation(participant1_id, participant2_id)
        except Exception:
            logger.exception("Error creating conversation %s/%s", participant1_id, participant2_id)
            return None
        return convo["_id"]

    async def subscribe_to_messages(self, conversation_id: str) -> None:
        await self.unsubscribe_from_messages()
        message_sub = await self._bus.subscribe(
            message_channel(conversation_id), functools.partial(self._on_message_event, conversation_id)
        )
        typing_sub = await self._bus.subscribe(
            typing_channel(conversation_id), functools.partial(self._on_typing_event, conversation_id)
        )
        self._subscriptions = [message_sub, typing_sub]
        self._tasks = [asyncio.create_task(sub.run()) for sub in self._subscriptions]
        self.active_conversation_id = conversation_id
        logger.debug("Subscribed to conversation=%s", conversation_id)

    async def unsubscribe_from_messages(self) -> None:
        for sub in self._subscriptions:
            await sub.cancel()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._subscriptions = []
        self._tasks = []
        if self.active_conversation_id is not None:
            self.typing_users.pop(self.active_conversation_id, None)
            self.active_conversation_id = None

    async def send_typing_indicator(self, conversation_id: str, user_id: str, is_typing: bool) -> None:
        try:
            await self._service.broadcast_typing(conversation_id, user_id, is_typing)
        except Exception:
            logger.warning("Typing indicator for conversation=%s not delivered", conversation_id, exc_info=True)

    async def close(self) -> None:
        await self.unsubscribe_from_messages()

    async def _on_message_event(self, conversation_id: str, raw: str) -> None:
        event = parse_event(raw)
        if event is None or event.table != "messages" or event.new is None:
            return
        message = MessageOut.model_validate(event.new)
        if event.event == "INSERT":
            self._merge_insert(conversation_id, message)
        elif event.event == "UPDATE":
            self.messages[conversation_id] = [
                message if m.id == message.id else m for m in self.messages.get(conversation_id, [])
            ]

    async def _on_typing_event(self, conversation_id: str, raw: str) -> None:
        event = parse_event(raw)
        if event is None or event.event != "typing" or not event.payload:
            return
        user_id = event.payload.get("user_id")
        if not user_id:
            return
        current = self.typing_users.get(conversation_id, [])
        if event.payload.get("is_typing"):
            if user_id not in current:
                self.typing_users[conversation_id] = current + [user_id]
        else:
            self.typing_users[conversation_id] = [u for u in current if u != user_id]

    def _merge_insert(self, conversation_id: str, message: MessageOut) -> None:
        cached = self.messages.get(conversation_id, [])
        # the sender sees both its own append and the realtime echo
        if any(m.id == message.id for m in cached):
            return
        self.messages[conversation_id] = cached + [message]
        self.conversations = [
            c.model_copy(update={"last_message": message.content, "last_message_at": message.created_at})
            if c.id == conversation_id else c
            for c in self.conversations
        ]
