"""
Shared pytest fixtures.
"""

import pytest

from app.infrastructure.local.chat_repository import TreeChatRepository
from app.infrastructure.local.database import get_engine, get_session_factory, init_db
from app.infrastructure.local.tree_store import InMemoryTreeStore


@pytest.fixture
def store():
    """Fresh in-memory tree store."""
    return InMemoryTreeStore()


@pytest.fixture
def repo(store):
    """Chat repository over the in-memory store."""
    return TreeChatRepository(store)


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory bound to a throwaway SQLite file."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'tree.db'}")
    await init_db(engine)
    yield get_session_factory(engine)
    await engine.dispose()
