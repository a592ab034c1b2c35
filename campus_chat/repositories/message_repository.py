from datetime import datetime, timezone
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

from campus_chat.models.message import MessageDocument


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("created_at", ASCENDING)])
        await self.collection.create_index([("conversation_id", ASCENDING), ("read_at", ASCENDING)])

    async def save_message(self, conversation_id: str, sender_id: str, content: str, session=None) -> MessageDocument:
        doc: Dict[str, Any] = {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "content": content,
            "read_at": None,
            "created_at": datetime.now(timezone.utc),
        }
        result = await self.collection.insert_one(doc, session=session)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def get_messages_by_conversation(self, conversation_id: str) -> List[MessageDocument]:
        sort = [("created_at", ASCENDING), ("_id", ASCENDING)]
        items = await self.collection.find({"conversation_id": conversation_id}).sort(sort).to_list(length=None)
        for it in items:
            it["_id"] = str(it["_id"])
        return items

    async def count_unread(self, conversation_id: str, reader_id: str) -> int:
        return await self.collection.count_documents(self._unread_query(conversation_id, reader_id))

    async def mark_read(self, conversation_id: str, reader_id: str) -> List[MessageDocument]:
        """Stamp read_at on the counterpart's unread messages and return the rows that changed."""
        query = self._unread_query(conversation_id, reader_id)
        pending = await self.collection.find(query, {"_id": 1}).sort([("created_at", ASCENDING), ("_id", ASCENDING)]).to_list(length=None)
        stamp = datetime.now(timezone.utc)
        changed = []
        for it in pending:
            # a concurrent reader may have stamped the row since the find
            row = await self.collection.find_one_and_update(
                {"_id": it["_id"], "read_at": None},
                {"$set": {"read_at": stamp}},
                return_document=ReturnDocument.AFTER,
            )
            if row is not None:
                row["_id"] = str(row["_id"])
                changed.append(row)
        return changed

    @staticmethod
    def _unread_query(conversation_id: str, reader_id: str) -> Dict[str, Any]:
        return {"conversation_id": conversation_id, "sender_id": {"$ne": reader_id}, "read_at": None}
