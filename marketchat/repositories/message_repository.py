from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from marketchat.models.message import MessageDocument
from marketchat.repositories.conversation_repository import to_object_id, utcnow
from marketchat.schemas.chat import ListingSnapshot, Message, as_utc, message_from_document
from marketchat.utils.errors import translate_store_errors


def _thread_order(doc: Dict[str, Any]):
    # timestamp, then insertion order
    return as_utc(doc["timestamp"]), doc["_id"]


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utcnow) -> None:
        self._db = db
        self._clock = clock

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("timestamp", ASCENDING)])

    @translate_store_errors
    async def append(
        self,
        conversation_id,
        sender_id: str,
        content: str,
        message_type: str = "text",
        listing: Optional[ListingSnapshot] = None,
    ) -> Message:
        doc: MessageDocument = {
            "conversation_id": to_object_id(conversation_id),
            "sender_id": sender_id,
            "content": content,
            "type": message_type,
            "timestamp": self._clock(),
        }
        if message_type == "listing" and listing is not None:
            doc["listing"] = listing.model_dump()
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return message_from_document(doc)

    @translate_store_errors
    async def list_for_conversation(self, conversation_id) -> List[Message]:
        cursor = self.collection.find({"conversation_id": to_object_id(conversation_id)}).sort(
            [("timestamp", ASCENDING), ("_id", ASCENDING)]
        )
        docs = await cursor.to_list(length=None)
        # delivery order from the store is not trusted
        docs.sort(key=_thread_order)
        return [message_from_document(d) for d in docs]

    @translate_store_errors
    async def get_recent(self, conversation_id, limit: int = 50) -> List[Message]:
        cursor = (
            self.collection.find({"conversation_id": to_object_id(conversation_id)})
            .sort([("timestamp", DESCENDING), ("_id", DESCENDING)])
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)
        docs.sort(key=_thread_order)
        return [message_from_document(d) for d in docs]
