import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, Iterable, Set

import redis.asyncio as redis
from redis.exceptions import RedisError

from marketchat.config import REDIS_URL


logger = logging.getLogger(__name__)

OnMessage = Callable[[str], Awaitable[None]]


def thread_channel(conversation_id: str) -> str:
    return f"thread:{conversation_id}"


def inbox_channel(user_id: str) -> str:
    return f"inbox:{user_id}"


class LocalBus:
    """In-process fanout, used when no Redis is configured."""

    enabled = False

    def __init__(self) -> None:
        self._queues: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def subscriber_count(self, channel: str) -> int:
        return len(self._queues.get(channel, ()))

    async def publish(self, channel: str, message: str) -> None:
        for queue in list(self._queues.get(channel, ())):
            queue.put_nowait(message)

    async def subscribe(self, channel: str, on_message: OnMessage):
        queue: asyncio.Queue = asyncio.Queue()
        self._queues[channel].add(queue)
        queues = self._queues

        class _Sub:
            async def run(self_inner):
                while True:
                    message = await queue.get()
                    await on_message(message)

            async def cancel(self_inner):
                subscribers = queues.get(channel)
                if subscribers is None:
                    return
                subscribers.discard(queue)
                if not subscribers:
                    del queues[channel]

        return _Sub()


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url, decode_responses=True)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: OnMessage):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            async def run(self_inner):
                while True:
                    msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    if msg and msg.get("type") == "message":
                        await on_message(msg.get("data"))

            async def cancel(self_inner):
                try:
                    await pubsub.unsubscribe(channel)
                    await pubsub.aclose()
                except RedisError as exc:
                    logger.warning("Failed to release subscription on %s: %s", channel, exc)

        return _Sub()

    async def close(self) -> None:
        await self._redis.aclose()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    if REDIS_URL:
        _bus = RedisBus(REDIS_URL)
    else:
        _bus = LocalBus()
    return _bus


def set_bus(bus) -> None:
    global _bus
    _bus = bus


async def close_bus() -> None:
    global _bus
    if isinstance(_bus, RedisBus):
        await _bus.close()
    _bus = None


async def notify(bus, channels: Iterable[str], message: str = "changed") -> None:
    """Tell live queries on ``channels`` to refetch; failures are logged only."""
    for channel in channels:
        try:
            await bus.publish(channel, message)
        except (RedisError, OSError) as exc:
            logger.warning("Change notification on %s failed: %s", channel, exc)
