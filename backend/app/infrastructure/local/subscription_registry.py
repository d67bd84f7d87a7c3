"""
Path-prefix keyed registry of tree listeners.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import count
from typing import Any, Optional

from app.interfaces.tree_store import SnapshotCallback, TreeQuery
from app.utils.tree_utils import is_related, split_path

_NOT_DELIVERED = object()
_ids = count(1)


@dataclass(eq=False)
class Listener:
    """One registered subscription."""

    path: str
    query: Optional[TreeQuery]
    callback: SnapshotCallback
    id: int = field(default_factory=lambda: next(_ids))
    active: bool = True
    last_value: Any = _NOT_DELIVERED

    def should_deliver(self, value: Any) -> bool:
        return self.active and (self.last_value is _NOT_DELIVERED or value != self.last_value)

    def is_woken_by(self, changed: str) -> bool:
        """True when a commit at ``changed`` can alter this listener's value."""
        if not is_related(self.path, changed):
            return False
        if self.query is None or not self.query.exclude:
            return True
        base, keys = split_path(self.path), split_path(changed)
        return not (len(keys) > len(base) + 1 and keys[len(base) + 1] in self.query.exclude)


class SubscriptionRegistry:
    """Tracks live listeners and selects the ones affected by a commit."""

    def __init__(self) -> None:
        self._listeners: dict[int, Listener] = {}

    def __len__(self) -> int:
        return len(self._listeners)

    def register(
        self,
        path: str,
        query: Optional[TreeQuery],
        callback: SnapshotCallback,
    ) -> Listener:
        listener = Listener(path=path, query=query, callback=callback)
        self._listeners[listener.id] = listener
        return listener

    def unregister(self, listener: Listener) -> None:
        # Deactivate first so a dispatch already iterating skips it.
        listener.active = False
        self._listeners.pop(listener.id, None)

    def affected(self, changed_paths: list[str]) -> list[Listener]:
        """Listeners whose path is an ancestor or descendant of a changed path."""
        return [
            listener
            for listener in list(self._listeners.values())
            if any(listener.is_woken_by(changed) for changed in changed_paths)
        ]

    def clear(self) -> None:
        for listener in list(self._listeners.values()):
            self.unregister(listener)
