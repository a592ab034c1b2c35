from typing import Dict, Iterable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from campus_chat.models.profile import ProfileDocument


class ProfileRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("profiles")

    async def get(self, user_id: str) -> Optional[ProfileDocument]:
        return await self._collection.find_one({"_id": user_id})

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, ProfileDocument]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        cur = self._collection.find({"_id": {"$in": ids}}, {"full_name": 1, "avatar_url": 1})
        return {doc["_id"]: doc for doc in await cur.to_list(length=None)}

    async def upsert(self, user_id: str, full_name: Optional[str], avatar_url: Optional[str]) -> ProfileDocument:
        await self._collection.update_one(
            {"_id": user_id},
            {"$set": {"full_name": full_name, "avatar_url": avatar_url}},
            upsert=True,
        )
        return {"_id": user_id, "full_name": full_name, "avatar_url": avatar_url}
