"""
Shared fixtures for the chat core tests.

Every test gets a fresh in-memory Motor database (mongomock-motor), an
in-process change bus and a deterministic clock that advances one second per
reading, so message order never depends on wall-clock resolution.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from mongomock_motor import AsyncMongoMockClient

from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.listing_repository import ListingRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.user_repository import UserRepository
from marketchat.services.chat_service import ChatService
from marketchat.services.inbox_service import InboxService
from marketchat.utils.realtime_bus import LocalBus


START = datetime(2024, 10, 5, 12, 0, 0, tzinfo=timezone.utc)


class TickingClock:

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        self.current += self.step
        return self.current


class Collector:
    """Async callback that queues every emission it receives."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()
        self.errors: list = []

    async def __call__(self, items) -> None:
        await self.queue.put(items)

    async def on_error(self, exc: Exception) -> None:
        self.errors.append(exc)

    async def next(self, timeout: float = 2.0):
        return await asyncio.wait_for(self.queue.get(), timeout)

    async def nothing_within(self, timeout: float = 0.2) -> bool:
        try:
            await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return True
        return False


@pytest.fixture
def db():
    return AsyncMongoMockClient()["marketchat_test"]


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def bus():
    return LocalBus()


@pytest.fixture
def conversation_repo(db, clock):
    return ConversationRepository(db, clock=clock)


@pytest.fixture
def message_repo(db, clock):
    return MessageRepository(db, clock=clock)


@pytest.fixture
def user_repo(db):
    return UserRepository(db)


@pytest.fixture
def listing_repo(db):
    return ListingRepository(db)


@pytest.fixture
def service(message_repo, conversation_repo, user_repo, listing_repo, bus):
    return ChatService(message_repo, conversation_repo, user_repo, listing_repo, bus)


@pytest.fixture
def inbox(service, user_repo):
    return InboxService(service, user_repo)


@pytest.fixture
def collector():
    return Collector


@pytest.fixture
async def profiles(db):
    await db["users"].insert_many([
        {"_id": "u1", "name": "Alice", "email": "alice@campus.edu", "photo_url": "https://img/alice.jpg"},
        {"_id": "u2", "name": "Bob", "display_name": "Bobby", "email": "bob@campus.edu", "photo_url": None},
        {"_id": "u3", "name": "Carol", "email": "carol@campus.edu"},
    ])


@pytest.fixture
async def textbook(db):
    await db["listings"].insert_one({
        "_id": "L1",
        "title": "Calculus Textbook",
        "price": 40,
        "image_url": "https://img/calc.jpg",
        "category": "Books",
        "user_id": "u2",
    })
    return "L1"


@pytest.fixture
def snapshot():
    return {
        "id": "L1",
        "title": "Calculus Textbook",
        "price": 40,
        "image_url": "https://img/calc.jpg",
        "category": "Books",
        "seller_id": "u2",
        "seller_name": "Bobby",
    }
