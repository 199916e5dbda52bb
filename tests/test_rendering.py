from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError

from marketchat.schemas.chat import ListingMessage, ListingSnapshot, TextMessage, message_from_document
from marketchat.utils.rendering import (
    format_inbox_time,
    format_message_time,
    listing_caption,
    message_payload,
    preview_for,
    render_variant,
)


NOW = datetime(2024, 10, 5, 15, 30, tzinfo=timezone.utc)

SNAPSHOT = {
    "id": "L1",
    "title": "Calculus Textbook",
    "price": 40,
    "image_url": None,
    "category": "Books",
    "seller_id": "u2",
    "seller_name": "Bob",
}


def _doc(**overrides):
    doc = {
        "_id": ObjectId(),
        "conversation_id": ObjectId(),
        "sender_id": "u1",
        "content": "hello",
        "type": "text",
        "timestamp": NOW,
    }
    doc.update(overrides)
    return doc


class TestPreview:

    def test_text_is_verbatim(self):
        assert preview_for("text", "Is this still available?") == "Is this still available?"

    def test_long_text_is_not_truncated(self):
        assert preview_for("text", "x" * 500) == "x" * 500

    def test_listing_uses_marker_and_title(self):
        assert preview_for("listing", "ignored", ListingSnapshot(**SNAPSHOT)) == "📦 Shared: Calculus Textbook"

    def test_listing_mapping_without_title(self):
        assert preview_for("listing", "", {}) == "📦 Shared: a listing"

    def test_caption(self):
        assert listing_caption("Desk Lamp") == "📦 Desk Lamp"


class TestDecodeAndVariant:

    def test_text_message(self):
        message = message_from_document(_doc())

        assert isinstance(message, TextMessage)
        assert render_variant(message) == "text_bubble"

    def test_listing_message(self):
        message = message_from_document(_doc(type="listing", content="📦 Calculus Textbook", listing=SNAPSHOT))

        assert isinstance(message, ListingMessage)
        assert render_variant(message) == "listing_card"

    def test_listing_without_snapshot_renders_as_text(self):
        message = message_from_document(_doc(type="listing", content="📦 Calculus Textbook"))

        assert isinstance(message, TextMessage)
        assert render_variant(message) == "text_bubble"
        assert message.content == "📦 Calculus Textbook"

    def test_malformed_snapshot_renders_as_text(self):
        message = message_from_document(_doc(type="listing", listing={"title": "No id or price"}))

        assert render_variant(message) == "text_bubble"

    def test_unknown_type_falls_back_to_text(self):
        message = message_from_document(_doc(type="voice_note", content="[voice]"))

        assert isinstance(message, TextMessage)
        assert message.content == "[voice]"

    def test_naive_timestamp_read_as_utc(self):
        message = message_from_document(_doc(timestamp=datetime(2024, 10, 5, 9, 0)))

        assert message.timestamp == datetime(2024, 10, 5, 9, 0, tzinfo=timezone.utc)

    def test_snapshot_is_immutable(self):
        snapshot = ListingSnapshot(**SNAPSHOT)

        with pytest.raises(ValidationError):
            snapshot.title = "changed"


class TestMessageTime:

    def test_same_day(self):
        assert format_message_time(datetime(2024, 10, 5, 9, 5, tzinfo=timezone.utc), now=NOW) == "9:05 AM"

    def test_noon_and_midnight(self):
        assert format_message_time(datetime(2024, 10, 5, 12, 0, tzinfo=timezone.utc), now=NOW) == "12:00 PM"
        assert format_message_time(datetime(2024, 10, 5, 0, 7, tzinfo=timezone.utc), now=NOW) == "12:07 AM"

    def test_other_day(self):
        assert format_message_time(datetime(2024, 10, 4, 15, 5, tzinfo=timezone.utc), now=NOW) == "Oct 4, 3:05 PM"

    def test_missing_timestamp(self):
        assert format_message_time(None) == ""

    def test_local_zone_decides_the_day(self):
        tz = timezone(timedelta(hours=-5))
        # 02:00 UTC on the 5th is still the 4th at UTC-5
        ts = datetime(2024, 10, 5, 2, 0, tzinfo=timezone.utc)

        assert format_message_time(ts, now=NOW, tz=tz) == "Oct 4, 9:00 PM"


class TestInboxTime:

    @pytest.mark.parametrize(
        "age, expected",
        [
            (timedelta(seconds=30), "Just now"),
            (timedelta(minutes=1), "1m ago"),
            (timedelta(minutes=59, seconds=59), "59m ago"),
            (timedelta(hours=1), "1h ago"),
            (timedelta(hours=23, minutes=59), "23h ago"),
            (timedelta(days=1), "1d ago"),
            (timedelta(days=6, hours=23), "6d ago"),
            (timedelta(days=7), "Sep 28"),
        ],
    )
    def test_buckets(self, age, expected):
        assert format_inbox_time(NOW - age, now=NOW) == expected

    def test_future_timestamp(self):
        assert format_inbox_time(NOW + timedelta(minutes=5), now=NOW) == "Just now"

    def test_missing_timestamp(self):
        assert format_inbox_time(None, now=NOW) == ""


class TestMessagePayload:

    def test_listing_payload_carries_variant_and_time(self):
        payload = message_payload(
            message_from_document(_doc(type="listing", content="📦 Calculus Textbook", listing=SNAPSHOT)),
            now=NOW,
        )

        assert payload["variant"] == "listing_card"
        assert payload["time_label"] == "3:30 PM"
        assert payload["listing"]["title"] == "Calculus Textbook"

    def test_text_payload(self):
        payload = message_payload(message_from_document(_doc()), now=NOW)

        assert payload["variant"] == "text_bubble"
        assert payload["type"] == "text"
