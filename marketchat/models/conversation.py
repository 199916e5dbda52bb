from datetime import datetime
from typing import List, TypedDict

from bson import ObjectId


class ConversationDocument(TypedDict, total=False):
    _id: ObjectId
    # always two user ids, stored sorted
    participants: List[str]
    last_message: str
    last_updated_at: datetime
    created_at: datetime
