import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from campus_chat.core.config import settings


logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


async def connect_to_mongo() -> None:
    global _client
    if _client is not None:
        return
    _client = AsyncIOMotorClient(settings.MONGO_URI, tz_aware=True)
    await _client.admin.command("ping")
    logger.info("Connected to MongoDB database=%s", settings.MONGO_DB)


async def close_mongo_connection() -> None:
    global _client
    if _client is None:
        return
    _client.close()
    _client = None
    logger.info("MongoDB connection closed")


def get_client() -> AsyncIOMotorClient:
    if _client is None:
        raise RuntimeError("MongoDB client is not connected; call connect_to_mongo() first")
    return _client


def get_database() -> AsyncIOMotorDatabase:
    return get_client()[settings.MONGO_DB]


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()
