from datetime import datetime, timezone, tzinfo
from typing import Any, Literal, Mapping, Optional, Union

from marketchat.schemas.chat import ListingMessage, ListingSnapshot, TextMessage


ATTACHMENT_MARKER = "📦"
UNKNOWN_USER = "Unknown User"
EMPTY_PREVIEW = "No messages yet"

RenderVariant = Literal["listing_card", "text_bubble"]


def listing_caption(title: str) -> str:
    return f"{ATTACHMENT_MARKER} {title}"


def preview_for(message_type: str, content: str, listing: Union[ListingSnapshot, Mapping[str, Any], None] = None) -> str:
    """Summary line stored on the conversation as ``last_message``."""
    if message_type == "listing":
        if isinstance(listing, ListingSnapshot):
            title = listing.title
        else:
            title = (listing or {}).get("title")
        return f"{ATTACHMENT_MARKER} Shared: {title or 'a listing'}"
    return content


def render_variant(message: Union[TextMessage, ListingMessage]) -> RenderVariant:
    if message.type == "listing" and getattr(message, "listing", None) is not None:
        return "listing_card"
    return "text_bubble"


def _clock(ts: datetime, now: Optional[datetime], tz: Optional[tzinfo]) -> tuple[datetime, datetime]:
    tz = tz or timezone.utc
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz), now.astimezone(tz)


def _time_of_day(ts: datetime) -> str:
    hour = ts.hour % 12 or 12
    return f"{hour}:{ts.minute:02d} {'AM' if ts.hour < 12 else 'PM'}"


def _short_date(ts: datetime) -> str:
    return f"{ts.strftime('%b')} {ts.day}"


def format_message_time(ts: Optional[datetime], now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
    """``3:05 PM`` for today, ``Oct 5, 3:05 PM`` otherwise."""
    if ts is None:
        return ""
    ts, now = _clock(ts, now, tz)
    if ts.date() == now.date():
        return _time_of_day(ts)
    return f"{_short_date(ts)}, {_time_of_day(ts)}"


def format_inbox_time(ts: Optional[datetime], now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
    if ts is None:
        return ""
    ts, now = _clock(ts, now, tz)
    minutes = int((now - ts).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return _short_date(ts)


def message_payload(message: Union[TextMessage, ListingMessage], now: Optional[datetime] = None) -> dict:
    """JSON body for a message, with the bubble variant and time label attached."""
    payload = message.model_dump(mode="json")
    payload["variant"] = render_variant(message)
    payload["time_label"] = format_message_time(message.timestamp, now=now)
    return payload
