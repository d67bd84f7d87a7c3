"""
Membership scrub for departed accounts.

Removes a user's participant key from every chat they belong to. Chats are
processed in multi-path batches; a failed batch is logged and left as is,
completed batches are never rolled back. Messages the user authored are not
touched.
"""

from __future__ import annotations

from app.core.config import get_settings
from app.core.logger import logger
from app.interfaces.chat_repository import IChatRepository
from app.models.membership import ScrubResult


class MembershipScrubService:
    """Best-effort removal of a user from all chats."""

    def __init__(self, chat_repo: IChatRepository, batch_size: int | None = None):
        self._chat_repo = chat_repo
        self._batch_size = batch_size or get_settings().SCRUB_BATCH_SIZE

    async def scrub_user(self, user_id: str) -> ScrubResult:
        """
        Remove ``user_id`` from every chat's participant set.

        Args:
            user_id: Departed user ID

        Returns:
            ScrubResult listing removed and failed chat IDs
        """
        result = ScrubResult(user_id=user_id)
        chats = await self._chat_repo.list_user_chats(user_id)
        if not chats:
            logger.info(f"No chats to scrub for user {user_id}")
            return result

        chat_ids = [chat.id for chat in chats]
        for start in range(0, len(chat_ids), self._batch_size):
            batch = chat_ids[start:start + self._batch_size]
            try:
                await self._chat_repo.remove_user_from_chats(user_id, batch)
            except Exception as e:
                logger.error(
                    f"Failed to remove user {user_id} from chats {batch}: {e}"
                )
                result.failed_chat_ids.extend(batch)
            else:
                result.removed_chat_ids.extend(batch)

        logger.info(
            f"Removed user {user_id} from {len(result.removed_chat_ids)} chats"
            f" ({len(result.failed_chat_ids)} failed)"
        )
        return result
