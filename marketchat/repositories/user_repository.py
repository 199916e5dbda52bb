import logging
from typing import List, Mapping

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError

from marketchat.models.user import UserDocument
from marketchat.schemas.chat import UserProfile, profile_from_document
from marketchat.utils.errors import NotFoundError, translate_store_errors


logger = logging.getLogger(__name__)


def _decode(doc: Mapping) -> UserProfile:
    try:
        return profile_from_document(doc)
    except ValidationError as exc:
        logger.warning("Profile %s is unreadable: %s", doc.get("_id"), exc)
        raise NotFoundError(f"User {doc.get('_id')} has no readable profile") from exc


class UserRepository:
    """Read access to profiles owned by the profile service."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    @translate_store_errors
    async def get_profile(self, uid: str) -> UserProfile:
        doc: UserDocument | None = await self._collection.find_one({"_id": uid})
        if not doc:
            raise NotFoundError(f"User {uid} not found")
        return _decode(doc)

    @translate_store_errors
    async def get_profiles(self, uids: List[str]) -> List[UserProfile]:
        cursor = self._collection.find({"_id": {"$in": list(uids)}})
        found = {}
        for doc in await cursor.to_list(length=None):
            try:
                found[doc["_id"]] = _decode(doc)
            except NotFoundError:
                continue
        return [found[uid] for uid in uids if uid in found]
