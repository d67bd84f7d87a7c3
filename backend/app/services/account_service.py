"""
Account lifecycle hooks.

Entry points the account collaborator calls when a user account is removed.
"""

from __future__ import annotations

from typing import Optional

from app.core.config import get_settings
from app.core.exceptions import ForbiddenError, ValidationError
from app.core.logger import logger
from app.models.membership import ScrubResult
from app.services.membership_service import MembershipScrubService


class AccountLifecycleService:
    """Runs chat cleanup for deleted accounts."""

    def __init__(
        self,
        scrub_service: MembershipScrubService,
        admin_user_ids: Optional[list[str]] = None,
    ):
        self._scrub_service = scrub_service
        if admin_user_ids is None:
            admin_user_ids = get_settings().ADMIN_USER_IDS
        self._admin_user_ids = set(admin_user_ids)

    def is_admin(self, user_id: str) -> bool:
        return user_id in self._admin_user_ids

    async def on_user_deleted(self, user_id: str) -> ScrubResult:
        """Scrub a deleted user from every chat."""
        if not user_id:
            raise ValidationError("User ID is required")
        logger.info(f"Starting chat cleanup for deleted user {user_id}")
        result = await self._scrub_service.scrub_user(user_id)
        if not result.is_complete:
            logger.warning(
                f"Chat cleanup for {user_id} incomplete: {result.failed_chat_ids}"
            )
        return result

    async def admin_delete_user(self, admin_id: str, user_id: str) -> ScrubResult:
        """Delete another user's account; admins cannot remove themselves here."""
        if not self.is_admin(admin_id):
            raise ForbiddenError("Only admins can delete user accounts")
        if user_id == admin_id:
            raise ValidationError("Cannot delete your own admin account")
        logger.info(f"Admin {admin_id} deleting user {user_id}")
        return await self.on_user_deleted(user_id)
