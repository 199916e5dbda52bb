import logging
from typing import Any, Dict, List, Mapping, Union

from pydantic import ValidationError

from marketchat.config import RECENT_MESSAGES_LIMIT
from marketchat.repositories.conversation_repository import ConversationRepository, to_object_id
from marketchat.repositories.listing_repository import ListingRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.user_repository import UserRepository
from marketchat.schemas.chat import (
    Conversation,
    ConversationDetails,
    ListingMessage,
    ListingSnapshot,
    Message,
)
from marketchat.utils.errors import ChatError, MessageValidationError
from marketchat.utils.live_query import LiveQuery
from marketchat.utils.realtime_bus import inbox_channel, notify, thread_channel
from marketchat.utils.rendering import listing_caption, preview_for


logger = logging.getLogger(__name__)

MESSAGE_TYPES = ("text", "listing")


def seller_display_name(profile) -> str:
    return profile.display_name or profile.name or profile.email or "Unknown"


class ChatService:

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository,
        listing_repo: ListingRepository,
        bus,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._bus = bus
        self._user_repo = user_repo
        self._listing_repo = listing_repo

    async def find_or_create_conversation(self, user_a: str, user_b: str) -> Conversation:
        """Return the conversation between two users, creating it on first contact.

        Find-then-insert is not atomic: if both users start the conversation at
        the same moment, two documents can be created for the pair.
        """
        if not (user_a or "").strip() or not (user_b or "").strip():
            raise MessageValidationError("Both participants are required")
        if user_a == user_b:
            raise MessageValidationError("A conversation needs two different users")
        existing = await self._conversation_repo.find_between(user_a, user_b)
        if existing:
            return existing
        convo = await self._conversation_repo.create(user_a, user_b)
        await notify(self._bus, [inbox_channel(p) for p in convo.participants])
        return convo

    async def send_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        message_type: str = "text",
        listing: Union[ListingSnapshot, Mapping[str, Any], None] = None,
    ) -> Message:
        snapshot = None
        if message_type not in MESSAGE_TYPES:
            raise MessageValidationError(f"Unsupported message type: {message_type!r}")
        content = (content or "").strip()
        if message_type == "text":
            if not content:
                raise MessageValidationError("Message content cannot be empty")
        else:
            snapshot = self._validate_snapshot(listing)
            content = content or listing_caption(snapshot.title)

        convo = await self._conversation_repo.get(conversation_id)
        if sender_id not in convo.participants:
            raise MessageValidationError("Sender is not a participant of this conversation")

        saved = await self._message_repo.append(
            conversation_id=convo.id,
            sender_id=sender_id,
            content=content,
            message_type=message_type,
            listing=snapshot,
        )
        try:
            await self._conversation_repo.update_summary(
                convo.id, preview_for(message_type, content, snapshot), saved.timestamp
            )
        except ChatError as exc:
            # the message is stored; only the inbox preview is stale
            logger.warning("Summary update for conversation %s failed: %s", convo.id, exc)
        await notify(self._bus, [thread_channel(convo.id)] + [inbox_channel(p) for p in convo.participants])
        return saved

    @staticmethod
    def _validate_snapshot(listing) -> ListingSnapshot:
        if listing is None:
            raise MessageValidationError("A listing message requires a listing snapshot")
        if isinstance(listing, ListingSnapshot):
            return listing
        try:
            return ListingSnapshot.model_validate(listing)
        except ValidationError as exc:
            raise MessageValidationError(f"Incomplete listing snapshot: {exc}") from exc

    async def share_listing(self, conversation_id: str, sender_id: str, listing_id: str) -> ListingMessage:
        listing = await self._listing_repo.get_listing(listing_id)
        seller_id = listing.get("user_id")
        seller_name = "Unknown"
        if seller_id:
            try:
                seller_name = seller_display_name(await self._user_repo.get_profile(seller_id))
            except ChatError as exc:
                logger.info("Could not resolve seller %s, using fallback: %s", seller_id, exc)
        snapshot = self._validate_snapshot(
            {
                "id": listing["_id"],
                "title": listing.get("title"),
                "price": listing.get("price"),
                "image_url": listing.get("image_url"),
                "category": listing.get("category"),
                "seller_id": seller_id,
                "seller_name": seller_name,
            }
        )
        return await self.send_message(conversation_id, sender_id, listing_caption(snapshot.title), "listing", snapshot)

    def stream_messages(self, conversation_id: str) -> LiveQuery:
        # the channel must match the one send_message publishes on
        cid = str(to_object_id(conversation_id))

        async def _fetch() -> List[Message]:
            await self._conversation_repo.get(cid)
            return await self._message_repo.list_for_conversation(cid)

        return LiveQuery(self._bus, thread_channel(cid), _fetch)

    def list_conversations_for_user(self, user_id: str) -> LiveQuery:
        return LiveQuery(
            self._bus,
            inbox_channel(user_id),
            lambda: self._conversation_repo.list_for_user(user_id),
        )

    async def get_conversation(self, conversation_id: str) -> Conversation:
        return await self._conversation_repo.get(conversation_id)

    async def get_user_conversations(self, user_id: str) -> List[Conversation]:
        return await self._conversation_repo.list_for_user(user_id)

    async def get_messages(self, conversation_id: str, limit: int = RECENT_MESSAGES_LIMIT):
        await self._conversation_repo.get(conversation_id)
        return await self._message_repo.get_recent(conversation_id, limit=limit)

    async def get_conversation_details(self, conversation_id: str) -> ConversationDetails:
        convo = await self._conversation_repo.get(conversation_id)
        profiles = await self._user_repo.get_profiles(convo.participants)
        data: Dict[str, Any] = convo.model_dump()
        return ConversationDetails(participant_details=profiles, **data)
