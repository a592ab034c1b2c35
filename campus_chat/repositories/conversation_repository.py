from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from campus_chat.models.conversation import ConversationDocument


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("pair_key", ASCENDING)], unique=True)
        await self.collection.create_index([("participant1_id", ASCENDING)])
        await self.collection.create_index([("participant2_id", ASCENDING)])
        await self.collection.create_index([("last_message_at", DESCENDING)])

    @staticmethod
    def pair_key(user_a: str, user_b: str) -> str:
        return ":".join(sorted([user_a, user_b]))

    async def get(self, conversation_id: str) -> Optional[ConversationDocument]:
        oid = self._to_object_id(conversation_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def get_or_create_one_to_one(self, user_a: str, user_b: str) -> ConversationDocument:
        key = self.pair_key(user_a, user_b)
        existing = await self.collection.find_one({"pair_key": key})
        if existing:
            existing["_id"] = str(existing["_id"])
            return existing
        now = datetime.now(timezone.utc)
        doc: Dict[str, Any] = {
            "participant1_id": user_a,
            "participant2_id": user_b,
            "pair_key": key,
            "last_message": None,
            "last_message_at": None,
            "created_at": now,
        }
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            # lost a concurrent create for the same pair
            existing = await self.collection.find_one({"pair_key": key})
            existing["_id"] = str(existing["_id"])
            return existing
        doc["_id"] = str(result.inserted_id)
        return doc

    async def update_on_new_message(self, conversation_id: str, preview: str, sent_at: datetime, session=None) -> None:
        await self.collection.update_one(
            {"_id": ObjectId(conversation_id)},
            {"$set": {"last_message": preview, "last_message_at": sent_at}},
            session=session,
        )

    async def list_for_user(self, user_id: str) -> List[ConversationDocument]:
        query = {"$or": [{"participant1_id": user_id}, {"participant2_id": user_id}]}
        # conversations without messages have no last_message_at and sort last
        sort = [("last_message_at", DESCENDING), ("created_at", DESCENDING), ("_id", DESCENDING)]
        items = await self.collection.find(query).sort(sort).to_list(length=None)
        for it in items:
            it["_id"] = str(it["_id"])
        return items

    def _to_object_id(self, oid_hex: str) -> Optional[ObjectId]:
        try:
            return ObjectId(oid_hex)
        except (InvalidId, TypeError):
            return None
