import asyncio
import logging
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from campus_chat.core.config import settings
from campus_chat.repositories.conversation_repository import ConversationRepository
from campus_chat.repositories.message_repository import MessageRepository
from campus_chat.repositories.profile_repository import ProfileRepository
from campus_chat.schemas.chat import ConversationView, MessageOut, RealtimeEvent
from campus_chat.services.errors import ConversationNotFoundError, NotParticipantError
from campus_chat.utils.realtime_bus import message_channel, publish_event, typing_channel


logger = logging.getLogger(__name__)


def counterpart_of(conversation: Dict[str, Any], user_id: str) -> str:
    if conversation["participant1_id"] == user_id:
        return conversation["participant2_id"]
    return conversation["participant1_id"]


class ChatService:

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        profile_repo: ProfileRepository,
        bus,
        notification_service=None,
        client=None,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._profile_repo = profile_repo
        self._bus = bus
        self._notifications = notification_service
        # a motor client enables transactional sends (replica set only)
        self._client = client

    async def get_or_create_conversation(self, user_id: str, other_user_id: str) -> Dict[str, Any]:
        if not other_user_id or other_user_id == user_id:
            raise ValueError("A conversation needs two different participants")
        return await self._conversation_repo.get_or_create_one_to_one(user_id, other_user_id)

    async def get_conversation_for(self, conversation_id: str, user_id: str) -> Dict[str, Any]:
        convo = await self._conversation_repo.get(conversation_id)
        if not convo:
            raise ConversationNotFoundError(conversation_id)
        if user_id not in (convo["participant1_id"], convo["participant2_id"]):
            raise NotParticipantError(conversation_id, user_id)
        return convo

    async def list_conversations(self, user_id: str) -> List[ConversationView]:
        convos = await self._conversation_repo.list_for_user(user_id)
        if not convos:
            return []
        other_ids = [counterpart_of(c, user_id) for c in convos]
        try:
            profiles = await self._profile_repo.get_many(other_ids)
        except PyMongoError:
            logger.exception("Error loading profiles for user=%s", user_id)
            profiles = {}
        counts = await asyncio.gather(
            *(self._message_repo.count_unread(c["_id"], user_id) for c in convos)
        )
        views = []
        for convo, other_id, unread in zip(convos, other_ids, counts):
            profile = profiles.get(other_id, {})
            views.append(ConversationView(
                id=convo["_id"],
                participant1_id=convo["participant1_id"],
                participant2_id=convo["participant2_id"],
                last_message=convo.get("last_message"),
                last_message_at=convo.get("last_message_at"),
                other_user_id=other_id,
                other_user_name=profile.get("full_name") or "Unknown User",
                other_user_photo=profile.get("avatar_url") or None,
                unread_count=unread or 0,
            ))
        return views

    async def get_history(self, conversation_id: str, user_id: Optional[str] = None) -> List[MessageOut]:
        if user_id is not None:
            await self.get_conversation_for(conversation_id, user_id)
        rows = await self._message_repo.get_messages_by_conversation(conversation_id)
        return [MessageOut.model_validate(r) for r in rows]

    async def send_message(self, conversation_id: str, sender_id: str, content: str) -> MessageOut:
        text = (content or "").strip()
        if not text:
            raise ValueError("Message content cannot be empty")
        convo = await self.get_conversation_for(conversation_id, sender_id)
        saved = await self._write_message(conversation_id, sender_id, text)
        message = MessageOut.model_validate(saved)
        logger.info(
            "Message sent",
            extra={"conversation_id": conversation_id, "user_id": sender_id, "message_id": message.id},
        )
        await publish_event(
            self._bus,
            message_channel(conversation_id),
            RealtimeEvent(event="INSERT", table="messages", new=message.model_dump(mode="json")),
        )
        await self._notify_offline_receiver(counterpart_of(convo, sender_id), message)
        return message

    async def mark_read(self, conversation_id: str, reader_id: str) -> int:
        await self.get_conversation_for(conversation_id, reader_id)
        updated = await self._message_repo.mark_read(conversation_id, reader_id)
        for row in updated:
            await publish_event(
                self._bus,
                message_channel(conversation_id),
                RealtimeEvent(event="UPDATE", table="messages", new=MessageOut.model_validate(row).model_dump(mode="json")),
            )
        return len(updated)

    async def broadcast_typing(self, conversation_id: str, user_id: str, is_typing: bool) -> None:
        await publish_event(
            self._bus,
            typing_channel(conversation_id),
            RealtimeEvent(event="typing", payload={"user_id": user_id, "is_typing": is_typing}),
        )

    async def should_push_offline(self, receiver_id: str) -> bool:
        try:
            return not await self._bus.is_online(receiver_id)
        except Exception:
            logger.warning("Presence lookup failed for %s; assuming offline", receiver_id, exc_info=True)
            return True

    async def _write_message(self, conversation_id: str, sender_id: str, text: str) -> Dict[str, Any]:
        preview = text[: settings.MESSAGE_PREVIEW_LENGTH]
        if self._client is None:
            saved = await self._message_repo.save_message(conversation_id, sender_id, text)
            await self._conversation_repo.update_on_new_message(conversation_id, preview, saved["created_at"])
            return saved
        async with await self._client.start_session() as session:
            async with session.start_transaction():
                saved = await self._message_repo.save_message(conversation_id, sender_id, text, session=session)
                await self._conversation_repo.update_on_new_message(
                    conversation_id, preview, saved["created_at"], session=session
                )
        return saved

    async def _notify_offline_receiver(self, receiver_id: str, message: MessageOut) -> None:
        if self._notifications is None:
            return
        if not await self.should_push_offline(receiver_id):
            return
        try:
            await self._notifications.send_push(
                receiver_id,
                "New message",
                message.content[:100],
                {"type": "message", "conversation_id": message.conversation_id, "message_id": message.id, "from": message.sender_id},
            )
        except Exception:
            # the message is already stored; a failed push must not fail the send
            logger.exception("Push for message %s failed", message.id)
