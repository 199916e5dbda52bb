import logging
from datetime import datetime, timezone
from typing import Callable, List

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from marketchat.models.conversation import ConversationDocument
from marketchat.schemas.chat import Conversation, as_utc, conversation_from_document
from marketchat.utils.errors import NotFoundError, translate_store_errors


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(conversation_id) -> ObjectId:
    if isinstance(conversation_id, ObjectId):
        return conversation_id
    try:
        return ObjectId(conversation_id)
    except (InvalidId, TypeError):
        raise NotFoundError(f"Conversation {conversation_id} not found") from None


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utcnow) -> None:
        self._db = db
        self._clock = clock

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participants", ASCENDING)])
        await self.collection.create_index([("last_updated_at", DESCENDING)])

    @translate_store_errors
    async def find_between(self, user_a: str, user_b: str) -> Conversation | None:
        # match on either participant, then require the exact pair
        wanted = {user_a, user_b}
        cursor = self.collection.find({"participants": {"$in": [user_a, user_b]}})
        for doc in await cursor.to_list(length=None):
            if set(doc.get("participants", [])) == wanted:
                return conversation_from_document(doc)
        return None

    @translate_store_errors
    async def create(self, user_a: str, user_b: str) -> Conversation:
        now = self._clock()
        doc: ConversationDocument = {
            "participants": sorted([user_a, user_b]),
            "last_message": "",
            "last_updated_at": now,
            "created_at": now,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Created conversation %s for %s", result.inserted_id, doc["participants"])
        return conversation_from_document(doc)

    @translate_store_errors
    async def get(self, conversation_id) -> Conversation:
        doc = await self.collection.find_one({"_id": to_object_id(conversation_id)})
        if not doc:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation_from_document(doc)

    @translate_store_errors
    async def update_summary(self, conversation_id, last_message: str, at: datetime | None = None) -> None:
        # last writer wins; both participants may write here
        await self.collection.update_one(
            {"_id": to_object_id(conversation_id)},
            {
                "$set": {
                    "last_message": last_message,
                    "last_updated_at": at or self._clock(),
                },
            },
        )

    @translate_store_errors
    async def list_for_user(self, user_id: str) -> List[Conversation]:
        cursor = self.collection.find({"participants": {"$in": [user_id]}}).sort(
            [("last_updated_at", DESCENDING), ("_id", DESCENDING)]
        )
        docs = await cursor.to_list(length=None)
        docs.sort(key=lambda d: (as_utc(d["last_updated_at"]), d["_id"]), reverse=True)
        return [conversation_from_document(d) for d in docs]
