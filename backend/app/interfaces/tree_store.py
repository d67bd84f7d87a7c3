"""
Tree store interface.

Defines the contract for the realtime key-value tree the chat subsystem is
built on: ordered push ids, multi-path writes, ordered-child queries and
push-based subscriptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class TreeQuery:
    """
    Ordered-child query over the children of a path.

    ``exclude`` names keys left out of every child: they are neither read
    nor delivered, and commits that only touch them do not wake the query.
    """

    order_by_child: Optional[str] = None
    equal_to: Any = None
    limit_to_last: Optional[int] = None
    exclude: tuple[str, ...] = ()


@dataclass(frozen=True)
class TreeSnapshot:
    """Immutable view of a path (or query result) at one commit."""

    key: Optional[str]
    value: Any

    def exists(self) -> bool:
        return self.value is not None

    def children(self) -> list[tuple[str, Any]]:
        """Child (key, value) pairs in store order."""
        if not isinstance(self.value, dict):
            return []
        return list(self.value.items())


SnapshotCallback = Callable[[TreeSnapshot], None]
Unsubscribe = Callable[[], None]


class ITreeStore(ABC):
    """Abstract interface for the realtime tree store."""

    @abstractmethod
    async def push(self, path: str, value: Any = None) -> str:
        """
        Allocate an ordered child id under a collection path.

        Args:
            path: Collection path
            value: Optional value written at the new child

        Returns:
            New child key, greater than every key previously pushed
        """
        pass

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the value at a path (None removes it)."""
        pass

    @abstractmethod
    async def update(self, path: str, values: dict[str, Any]) -> None:
        """
        Write several relative paths under ``path`` in one commit.

        Keys may contain '/' to address nested children; a None value
        removes that child.
        """
        pass

    @abstractmethod
    async def remove(self, path: str) -> None:
        """Remove the value at a path."""
        pass

    @abstractmethod
    async def get(self, path: str, query: Optional[TreeQuery] = None) -> TreeSnapshot:
        """
        One-shot read of a path or query.

        Args:
            path: Path to read
            query: Optional child query

        Returns:
            TreeSnapshot
        """
        pass

    @abstractmethod
    async def subscribe(
        self,
        path: str,
        callback: SnapshotCallback,
        query: Optional[TreeQuery] = None,
    ) -> Unsubscribe:
        """
        Subscribe to value changes of a path or query.

        The callback receives the current value once, then the full value
        again after every commit that changes it.

        Returns:
            Idempotent disposer; no callback fires after it returns
        """
        pass
