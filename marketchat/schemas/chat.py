import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from marketchat.config import MESSAGE_MAX_LENGTH


logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    # the store hands back naive datetimes that are already UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ListingSnapshot(BaseModel):
    """Copy of a catalog listing taken when it is shared in a conversation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    price: float = Field(ge=0)
    image_url: Optional[str]
    category: Optional[str]
    seller_id: Optional[str]
    seller_name: Optional[str]

    @field_validator("id", "title")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class Conversation(BaseModel):

    id: str
    participants: List[str]
    last_message: str = ""
    last_updated_at: datetime
    created_at: datetime

    def other_participant(self, user_id: str) -> Optional[str]:
        return next((p for p in self.participants if p != user_id), None)


class _MessageBase(BaseModel):

    id: str
    conversation_id: str
    sender_id: str
    content: str
    timestamp: datetime


class TextMessage(_MessageBase):

    type: Literal["text"] = "text"


class ListingMessage(_MessageBase):

    type: Literal["listing"] = "listing"
    listing: ListingSnapshot


Message = Annotated[Union[TextMessage, ListingMessage], Field(discriminator="type")]


class UserProfile(BaseModel):

    uid: str
    name: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None


class InboxRow(Conversation):

    other_user_id: Optional[str] = None
    other_user: Optional[UserProfile] = None
    display_name: str
    preview: str
    time_label: str = ""


class ConversationDetails(Conversation):

    participant_details: List[UserProfile] = []


class StartConversationRequest(BaseModel):

    other_user_id: str = Field(min_length=1)


class SendMessageRequest(BaseModel):

    content: str = Field(default="", max_length=MESSAGE_MAX_LENGTH)
    type: str = "text"
    listing: Optional[Dict[str, Any]] = None


class ShareListingRequest(BaseModel):

    listing_id: str = Field(min_length=1)


def conversation_from_document(doc: Mapping[str, Any]) -> Conversation:
    return Conversation(
        id=str(doc["_id"]),
        participants=list(doc.get("participants", [])),
        last_message=doc.get("last_message") or "",
        last_updated_at=as_utc(doc["last_updated_at"]),
        created_at=as_utc(doc["created_at"]),
    )


def message_from_document(doc: Mapping[str, Any]) -> Union[TextMessage, ListingMessage]:
    """Decode a stored message.

    Only a ``listing`` message with a usable snapshot becomes a ListingMessage.
    Anything else, including unknown type tags, is read as a TextMessage so it
    can still be shown as a plain bubble.
    """
    fields = {
        "id": str(doc["_id"]),
        "conversation_id": str(doc.get("conversation_id")),
        "sender_id": doc.get("sender_id", ""),
        "content": doc.get("content") or "",
        "timestamp": as_utc(doc["timestamp"]),
    }
    kind = doc.get("type")
    if kind == "listing" and doc.get("listing"):
        try:
            return ListingMessage(listing=ListingSnapshot.model_validate(doc["listing"]), **fields)
        except ValidationError as exc:
            logger.warning("Message %s has a malformed listing snapshot: %s", fields["id"], exc)
    elif kind not in ("text", "listing"):
        logger.debug("Message %s has unrecognized type %r", fields["id"], kind)
    return TextMessage(**fields)


def profile_from_document(doc: Mapping[str, Any]) -> UserProfile:
    return UserProfile(
        uid=str(doc["_id"]),
        name=doc.get("name"),
        display_name=doc.get("display_name"),
        email=doc.get("email"),
        photo_url=doc.get("photo_url"),
    )
