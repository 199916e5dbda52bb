from fastapi import Depends, Header, HTTPException

from marketchat.database.connection import mongo_db_dependency
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.listing_repository import ListingRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.user_repository import UserRepository
from marketchat.services.chat_service import ChatService
from marketchat.services.inbox_service import InboxService
from marketchat.utils.realtime_bus import get_bus


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    # set by the identity layer in front of this service
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id


async def get_chat_service(db = Depends(mongo_db_dependency)) -> ChatService:
    return ChatService(
        MessageRepository(db),
        ConversationRepository(db),
        UserRepository(db),
        ListingRepository(db),
        await get_bus(),
    )


async def get_inbox_service(db = Depends(mongo_db_dependency), service: ChatService = Depends(get_chat_service)) -> InboxService:
    return InboxService(service, UserRepository(db))
