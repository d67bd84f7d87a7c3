"""
In-process tree store implementations.

BaseTreeStore owns the write lock, commit ordering and subscription fan-out;
subclasses only provide raw reads and atomic multi-path commits.
"""

from __future__ import annotations

import asyncio
from abc import abstractmethod
from typing import Any, Callable, Optional

from app.core.logger import logger
from app.infrastructure.local.subscription_registry import Listener, SubscriptionRegistry
from app.interfaces.tree_store import (
    ITreeStore,
    SnapshotCallback,
    TreeQuery,
    TreeSnapshot,
    Unsubscribe,
)
from app.utils.push_id import generate_push_id
from app.utils.tree_utils import (
    apply_query,
    get_at,
    join_path,
    normalize,
    set_at,
    split_path,
)


class BaseTreeStore(ITreeStore):
    """Shared commit and fan-out logic for tree stores."""

    def __init__(self, id_generator: Optional[Callable[[], str]] = None):
        self._lock = asyncio.Lock()
        self._registry = SubscriptionRegistry()
        self._generate_id = id_generator or generate_push_id
        self._closed = False

    # -------------------------------------------
    # Backend hooks
    # -------------------------------------------

    @abstractmethod
    async def _read(self, path: str, exclude: tuple[str, ...] = ()) -> Any:
        """Return the normalized value at ``path`` (None if absent), minus ``exclude`` children."""

    @abstractmethod
    async def _commit(self, changes: dict[str, Any]) -> None:
        """Apply absolute path -> value (None deletes) changes atomically."""

    # -------------------------------------------
    # Writes
    # -------------------------------------------

    async def push(self, path: str, value: Any = None) -> str:
        key = self._generate_id()
        if value is not None:
            await self.set(join_path(path, key), value)
        return key

    async def set(self, path: str, value: Any) -> None:
        await self._apply({join_path(path): normalize(value)})

    async def update(self, path: str, values: dict[str, Any]) -> None:
        if not values:
            return
        changes = {join_path(path, str(key)): normalize(value) for key, value in values.items()}
        await self._apply(changes)

    async def remove(self, path: str) -> None:
        await self._apply({join_path(path): None})

    async def _apply(self, changes: dict[str, Any]) -> None:
        self._check_open()
        async with self._lock:
            await self._commit(changes)
            await self._dispatch(list(changes))

    # -------------------------------------------
    # Reads and subscriptions
    # -------------------------------------------

    async def get(self, path: str, query: Optional[TreeQuery] = None) -> TreeSnapshot:
        self._check_open()
        return await self._snapshot(join_path(path), query)

    async def subscribe(
        self,
        path: str,
        callback: SnapshotCallback,
        query: Optional[TreeQuery] = None,
    ) -> Unsubscribe:
        self._check_open()
        async with self._lock:
            listener = self._registry.register(join_path(path), query, callback)
            await self._deliver(listener)

        def unsubscribe() -> None:
            self._registry.unregister(listener)

        return unsubscribe

    async def _snapshot(self, path: str, query: Optional[TreeQuery]) -> TreeSnapshot:
        keys = split_path(path)
        exclude = query.exclude if query is not None else ()
        value = apply_query(await self._read(path, exclude), query)
        return TreeSnapshot(key=keys[-1] if keys else None, value=value)

    async def _dispatch(self, changed_paths: list[str]) -> None:
        for listener in self._registry.affected(changed_paths):
            await self._deliver(listener)

    async def _deliver(self, listener: Listener) -> None:
        if not listener.active:
            return
        snapshot = await self._snapshot(listener.path, listener.query)
        if not listener.should_deliver(snapshot.value):
            return
        listener.last_value = snapshot.value
        try:
            listener.callback(snapshot)
        except Exception as e:
            logger.warning(f"Tree listener on '{listener.path}' raised: {e!r}")

    # -------------------------------------------
    # Lifecycle
    # -------------------------------------------

    @property
    def listener_count(self) -> int:
        return len(self._registry)

    async def close(self) -> None:
        """Drop every listener; later calls raise."""
        self._registry.clear()
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Tree store is closed")


class InMemoryTreeStore(BaseTreeStore):
    """Dict-backed tree store for tests and single-process demos."""

    def __init__(
        self,
        initial: Optional[dict[str, Any]] = None,
        id_generator: Optional[Callable[[], str]] = None,
    ):
        super().__init__(id_generator=id_generator)
        self._root: dict[str, Any] = normalize(initial) or {}

    async def _read(self, path: str, exclude: tuple[str, ...] = ()) -> Any:
        return get_at(self._root, split_path(path), exclude)

    async def _commit(self, changes: dict[str, Any]) -> None:
        root = self._root
        for path, value in changes.items():
            root = set_at(root, split_path(path), value)
        self._root = root if isinstance(root, dict) else {}
