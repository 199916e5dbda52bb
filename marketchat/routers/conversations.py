from fastapi import APIRouter, Depends, Query

from marketchat.config import RECENT_MESSAGES_LIMIT
from marketchat.schemas.chat import SendMessageRequest, ShareListingRequest, StartConversationRequest
from marketchat.services.chat_service import ChatService
from marketchat.services.inbox_service import InboxService
from marketchat.utils.dependencies import get_chat_service, get_current_user_id, get_inbox_service
from marketchat.utils.errors import NotFoundError
from marketchat.utils.rendering import message_payload


router = APIRouter(prefix="/conversations", tags=["chat"])


async def _participant(service: ChatService, conversation_id: str, user_id: str):
    convo = await service.get_conversation(conversation_id)
    if user_id not in convo.participants:
        raise NotFoundError(f"Conversation {conversation_id} not found")
    return convo


@router.post("")
async def start_conversation(body: StartConversationRequest, current_user: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    convo = await service.find_or_create_conversation(current_user, body.other_user_id)
    return convo.model_dump(mode="json")


@router.get("")
async def list_conversations(current_user: str = Depends(get_current_user_id), inbox: InboxService = Depends(get_inbox_service)):
    rows = await inbox.get_inbox(current_user)
    return {"items": [r.model_dump(mode="json") for r in rows]}


@router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, current_user: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    await _participant(service, conversation_id, current_user)
    details = await service.get_conversation_details(conversation_id)
    return details.model_dump(mode="json")


@router.get("/{conversation_id}/messages")
async def list_messages(conversation_id: str, limit: int = Query(RECENT_MESSAGES_LIMIT, ge=1, le=200), current_user: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    await _participant(service, conversation_id, current_user)
    messages = await service.get_messages(conversation_id, limit=limit)
    return {"items": [message_payload(m) for m in messages]}


@router.post("/{conversation_id}/messages", status_code=201)
async def send_message(conversation_id: str, body: SendMessageRequest, current_user: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    saved = await service.send_message(conversation_id, current_user, body.content, body.type, body.listing)
    return message_payload(saved)


@router.post("/{conversation_id}/listings", status_code=201)
async def share_listing(conversation_id: str, body: ShareListingRequest, current_user: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    saved = await service.share_listing(conversation_id, current_user, body.listing_id)
    return message_payload(saved)
