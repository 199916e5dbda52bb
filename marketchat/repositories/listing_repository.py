from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from marketchat.models.listing import ListingDocument
from marketchat.utils.errors import NotFoundError, translate_store_errors


class ListingRepository:
    """Read access to the catalog's listings, used to snapshot a shared listing."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("listings")

    @translate_store_errors
    async def get_listing(self, listing_id: str) -> ListingDocument:
        # catalog ids may be plain strings or ObjectIds
        keys: list = [listing_id]
        if ObjectId.is_valid(listing_id):
            keys.append(ObjectId(listing_id))
        doc = await self._collection.find_one({"_id": {"$in": keys}})
        if not doc:
            raise NotFoundError(f"Listing {listing_id} not found")
        doc["_id"] = str(doc["_id"])
        return doc
