import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from pymongo.errors import PyMongoError


logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


class ChatError(Exception):
    """Base class for errors raised by the chat core."""


class NotFoundError(ChatError, LookupError):
    """A conversation, message, profile or listing does not exist."""


class MessageValidationError(ChatError, ValueError):
    """Input rejected before anything was written."""


class TransientStoreError(ChatError):
    """The store (or the change bus) failed; the caller may retry."""


def translate_store_errors(func: F) -> F:
    """Re-raise driver errors from a repository coroutine as TransientStoreError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as exc:
            logger.warning("Store operation %s failed: %s", func.__qualname__, exc)
            raise TransientStoreError(str(exc)) from exc

    return wrapper  # type: ignore[return-value]
