from datetime import datetime
from typing import Literal, Optional, TypedDict

from bson import ObjectId


MessageType = Literal["text", "listing"]


class ListingSnapshotDocument(TypedDict):
    id: str
    title: str
    price: float
    image_url: Optional[str]
    category: Optional[str]
    seller_id: Optional[str]
    seller_name: Optional[str]


class MessageDocument(TypedDict, total=False):
    _id: ObjectId
    conversation_id: ObjectId
    sender_id: str
    content: str
    type: MessageType
    timestamp: datetime
    # only present when type == "listing"
    listing: ListingSnapshotDocument
