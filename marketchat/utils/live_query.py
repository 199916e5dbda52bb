import asyncio
import logging
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")

OnData = Callable[[List[T]], Awaitable[None]]
OnError = Callable[[Exception], Awaitable[None]]


class Subscription:
    """Handle returned by ``LiveQuery.subscribe``; ``cancel()`` stops delivery immediately."""

    def __init__(self, task: asyncio.Task) -> None:
        self._task = task
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return not self._task.done()

    def cancel(self) -> None:
        self._cancelled = True
        if not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Block until the subscription ends (cancelled or failed)."""
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise


class LiveQuery(Generic[T]):
    """Re-delivers the complete result of ``fetch`` every time ``channel`` signals a change.

    The bus registration happens before the first fetch, so a change landing
    between the two still triggers a refetch. Emissions are delivered one at a
    time, in order. A failing fetch or bus ends the subscription and is reported
    to ``on_error``; nothing reconnects on its own.
    """

    def __init__(self, bus, channel: str, fetch: Callable[[], Awaitable[List[T]]]) -> None:
        self._bus = bus
        self.channel = channel
        self._fetch = fetch

    def subscribe(self, on_data: OnData, on_error: Optional[OnError] = None) -> Subscription:
        task = asyncio.get_running_loop().create_task(self._run(on_data, on_error))
        return Subscription(task)

    async def _run(self, on_data: OnData, on_error: Optional[OnError]) -> None:
        async def _on_change(_message: str) -> None:
            await on_data(await self._fetch())

        sub = None
        try:
            sub = await self._bus.subscribe(self.channel, _on_change)
            await on_data(await self._fetch())
            await sub.run()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Live query on %s stopped: %s", self.channel, exc)
            if on_error is not None:
                try:
                    await on_error(exc)
                except Exception:
                    logger.exception("Error handler for %s failed", self.channel)
        finally:
            if sub is not None:
                await sub.cancel()
