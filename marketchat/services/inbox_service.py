import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from marketchat.repositories.user_repository import UserRepository
from marketchat.schemas.chat import Conversation, InboxRow
from marketchat.services.chat_service import ChatService
from marketchat.utils.errors import ChatError
from marketchat.utils.live_query import OnError, Subscription
from marketchat.utils.rendering import EMPTY_PREVIEW, UNKNOWN_USER, format_inbox_time


logger = logging.getLogger(__name__)


class InboxService:
    """Joins the live conversation list with the other participant's profile."""

    def __init__(self, chat_service: ChatService, user_repo: UserRepository) -> None:
        self._chat_service = chat_service
        self._user_repo = user_repo

    async def _row(self, user_id: str, convo: Conversation) -> InboxRow:
        other_id = convo.other_participant(user_id)
        other_user = None
        if other_id:
            try:
                other_user = await self._user_repo.get_profile(other_id)
            except ChatError as exc:
                # a failed lookup degrades this row only
                logger.warning("Profile lookup for %s in conversation %s failed: %s", other_id, convo.id, exc)
        return InboxRow(
            **convo.model_dump(),
            other_user_id=other_id,
            other_user=other_user,
            display_name=(other_user and (other_user.name or other_user.display_name)) or UNKNOWN_USER,
            preview=convo.last_message or EMPTY_PREVIEW,
            time_label=format_inbox_time(convo.last_updated_at),
        )

    async def build_rows(self, user_id: str, conversations: List[Conversation]) -> List[InboxRow]:
        # lookups run together; the batch is returned once every row is resolved
        return list(await asyncio.gather(*(self._row(user_id, c) for c in conversations)))

    async def get_inbox(self, user_id: str) -> List[InboxRow]:
        return await self.build_rows(user_id, await self._chat_service.get_user_conversations(user_id))

    def subscribe_inbox(
        self,
        user_id: str,
        on_update: Callable[[List[InboxRow]], Awaitable[None]],
        on_error: Optional[OnError] = None,
    ) -> Subscription:
        async def _enrich(conversations: List[Conversation]) -> None:
            await on_update(await self.build_rows(user_id, conversations))

        return self._chat_service.list_conversations_for_user(user_id).subscribe(_enrich, on_error)
