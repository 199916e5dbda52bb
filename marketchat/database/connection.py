import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from marketchat.config import MONGO_DB_NAME, MONGO_URL
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.message_repository import MessageRepository


logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


async def connect_to_mongo() -> None:
    global _client
    _client = AsyncIOMotorClient(MONGO_URL, tz_aware=True)
    db = _client[MONGO_DB_NAME]
    await ConversationRepository(db).ensure_indexes()
    await MessageRepository(db).ensure_indexes()
    logger.info("Connected to MongoDB database %s", MONGO_DB_NAME)


async def close_mongo_connection() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None


def get_database() -> AsyncIOMotorDatabase:
    if _client is None:
        raise RuntimeError("MongoDB client is not connected")
    return _client[MONGO_DB_NAME]


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()
