from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from campus_chat.models.notification import NotificationDocument


class NotificationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["notifications"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])

    async def create(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        action_url: Optional[str] = None,
    ) -> NotificationDocument:
        doc: Dict[str, Any] = {
            "user_id": user_id,
            "notification_type": notification_type,
            "title": title,
            "body": body,
            "data": data or {},
            "is_read": False,
            "action_url": action_url,
            "created_at": datetime.now(timezone.utc),
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def list_for_user(self, user_id: str, limit: int = 100) -> List[NotificationDocument]:
        sort = [("created_at", DESCENDING), ("_id", DESCENDING)]
        items = await self.collection.find({"user_id": user_id}).sort(sort).limit(limit).to_list(length=limit)
        for it in items:
            it["_id"] = str(it["_id"])
        return items

    async def mark_read(self, notification_id: str, user_id: str) -> Optional[NotificationDocument]:
        oid = self._to_object_id(notification_id)
        if oid is None:
            return None
        result = await self.collection.update_one({"_id": oid, "user_id": user_id}, {"$set": {"is_read": True}})
        if not result.matched_count:
            return None
        doc = await self.collection.find_one({"_id": oid})
        doc["_id"] = str(doc["_id"])
        return doc

    async def mark_all_read(self, user_id: str) -> List[NotificationDocument]:
        pending = await self.collection.find({"user_id": user_id, "is_read": False}, {"_id": 1}).to_list(length=None)
        ids = [it["_id"] for it in pending]
        if not ids:
            return []
        await self.collection.update_many({"_id": {"$in": ids}}, {"$set": {"is_read": True}})
        items = await self.collection.find({"_id": {"$in": ids}}).to_list(length=None)
        for it in items:
            it["_id"] = str(it["_id"])
        return items

    async def delete(self, notification_id: str, user_id: str) -> Optional[NotificationDocument]:
        oid = self._to_object_id(notification_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid, "user_id": user_id})
        if not doc:
            return None
        await self.collection.delete_one({"_id": oid})
        doc["_id"] = str(doc["_id"])
        return doc

    def _to_object_id(self, oid_hex: str) -> Optional[ObjectId]:
        try:
            return ObjectId(oid_hex)
        except (InvalidId, TypeError):
            return None
