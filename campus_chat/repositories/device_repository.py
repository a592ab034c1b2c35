from datetime import datetime, timezone
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from campus_chat.models.device import DeviceDocument


class DeviceRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["devices"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("user_id", ASCENDING), ("platform", ASCENDING)])

    async def register(self, user_id: str, platform: str, token: str) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        await self.collection.update_one(
            {"user_id": user_id, "platform": platform, "token": token},
            {"$set": {"last_seen_at": now}},
            upsert=True,
        )
        return {"user_id": user_id, "platform": platform, "token": token}

    async def get_tokens(self, user_id: str, platform: str | None = None) -> List[DeviceDocument]:
        query: Dict[str, Any] = {"user_id": user_id}
        if platform:
            query["platform"] = platform
        return await self.collection.find(query).to_list(length=100)

    async def remove_token(self, token: str) -> int:
        result = await self.collection.delete_many({"token": token})
        return result.deleted_count or 0
