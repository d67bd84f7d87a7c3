"""
Explicitly constructed chat backend context.

Holds the tree store connection and the components built on it, with an
init/shutdown lifecycle owned by whoever creates it (the app lifespan, a
worker, a test).
"""

from __future__ import annotations

from typing import Optional

from app.core.config import Settings, get_settings
from app.core.logger import logger
from app.infrastructure.local.chat_repository import TreeChatRepository
from app.infrastructure.local.tree_store import BaseTreeStore, InMemoryTreeStore
from app.interfaces.chat_repository import IChatRepository
from app.services.account_service import AccountLifecycleService
from app.services.membership_service import MembershipScrubService
from app.services.realtime_service import RealtimeManager


async def create_tree_store(settings: Settings) -> BaseTreeStore:
    """Build the tree store selected by TREE_STORE_BACKEND."""
    if settings.TREE_STORE_BACKEND == "memory":
        return InMemoryTreeStore()

    from app.infrastructure.local.database import get_engine, get_session_factory, init_db
    from app.infrastructure.local.sqlite_tree_store import SqliteTreeStore

    engine = get_engine(settings.DATABASE_URL)
    await init_db(engine)
    return SqliteTreeStore(session_factory=get_session_factory(engine))


class ChatContext:
    """Store handle plus the repository and services that share it."""

    def __init__(
        self,
        store: BaseTreeStore,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.chat_repo: IChatRepository = TreeChatRepository(store)
        self.realtime = RealtimeManager()
        self.scrub_service = MembershipScrubService(
            self.chat_repo, batch_size=self.settings.SCRUB_BATCH_SIZE
        )
        self.account_service = AccountLifecycleService(
            self.scrub_service, admin_user_ids=self.settings.ADMIN_USER_IDS
        )

    @classmethod
    async def create(
        cls,
        settings: Optional[Settings] = None,
        store: Optional[BaseTreeStore] = None,
    ) -> "ChatContext":
        settings = settings or get_settings()
        store = store or await create_tree_store(settings)
        logger.info(f"Chat context ready ({settings.TREE_STORE_BACKEND} tree store)")
        return cls(store, settings=settings)

    async def shutdown(self) -> None:
        await self.realtime.close()
        await self.store.close()
        logger.info("Chat context shut down")
