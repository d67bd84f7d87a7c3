"""
Account lifecycle endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter

from app.api.deps import AccountService, CurrentUser, Realtime, to_http_exception
from app.core.exceptions import ChatBackendError
from app.models.membership import ScrubResult
from app.services.chat_streams import user_chats_channel
from app.services.realtime_service import RealtimeManager

router = APIRouter()


def _end_inbox_stream(realtime: RealtimeManager, user_id: str) -> None:
    # Message streams end on their own once the scrub removes the participant flags.
    realtime.end_nowait(user_chats_channel(user_id), {"type": "account_deleted"})


@router.delete("/me", response_model=ScrubResult)
async def delete_my_account(user: CurrentUser, accounts: AccountService, realtime: Realtime):
    """Delete the current account and remove it from every chat."""
    try:
        result = await accounts.on_user_deleted(user.id)
    except ChatBackendError as e:
        raise to_http_exception(e) from e
    _end_inbox_stream(realtime, user.id)
    return result


@router.delete("/{user_id}", response_model=ScrubResult)
async def admin_delete_user(
    user_id: str,
    user: CurrentUser,
    accounts: AccountService,
    realtime: Realtime,
):
    """Admin-only deletion of another user's account."""
    try:
        result = await accounts.admin_delete_user(user.id, user_id)
    except ChatBackendError as e:
        raise to_http_exception(e) from e
    _end_inbox_stream(realtime, user_id)
    return result
