"""
SQLite implementation of the tree store.

Leaves are stored one row per full path; interior nodes are implied by their
descendants. A multi-path update is committed in a single transaction.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from sqlalchemy import and_, delete, func, not_, or_, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import InfrastructureError
from app.infrastructure.local.database import TreeNodeORM, get_session_factory
from app.infrastructure.local.tree_store import BaseTreeStore
from app.utils.tree_utils import build_tree, iter_leaves, split_path


def _subtree_clause(path: str):
    if not path:
        return TreeNodeORM.path.is_not(None)
    # '0' is the character after '/', so the range holds exactly "{path}/...".
    return or_(
        TreeNodeORM.path == path,
        and_(TreeNodeORM.path >= f"{path}/", TreeNodeORM.path < f"{path}0"),
    )


def _excluded_children_clause(path: str, exclude: tuple[str, ...]):
    """Rows under ``{path}/{child}/{key}`` for any key in ``exclude``."""
    rest = func.substr(TreeNodeORM.path, len(f"{path}/") + 1 if path else 1)
    slash = func.instr(rest, "/")
    tail = func.substr(rest, slash + 1)
    return and_(
        slash > 0,
        or_(*[or_(tail == key, func.substr(tail, 1, len(key) + 1) == f"{key}/") for key in exclude]),
    )


def _ancestors(path: str) -> list[str]:
    keys = split_path(path)
    return ["/".join(keys[:index]) for index in range(1, len(keys))]


class SqliteTreeStore(BaseTreeStore):
    """SQLite-backed tree store."""

    def __init__(
        self,
        session_factory=None,
        id_generator: Optional[Callable[[], str]] = None,
    ):
        super().__init__(id_generator=id_generator)
        self._session_factory = session_factory or get_session_factory()

    async def _read(self, path: str, exclude: tuple[str, ...] = ()) -> Any:
        prefix_len = len(split_path(path))
        stmt = select(TreeNodeORM.path, TreeNodeORM.value).where(_subtree_clause(path))
        if exclude:
            stmt = stmt.where(not_(_excluded_children_clause(path, exclude)))
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt.order_by(TreeNodeORM.path))
                rows = result.all()
        except SQLAlchemyError as e:
            raise InfrastructureError(f"Failed to read '{path}'", details=str(e)) from e

        return build_tree([(split_path(row_path)[prefix_len:], value) for row_path, value in rows])

    async def _commit(self, changes: dict[str, Any]) -> None:
        try:
            async with self._session_factory() as session:
                for path, value in changes.items():
                    await session.execute(delete(TreeNodeORM).where(_subtree_clause(path)))
                    ancestors = _ancestors(path)
                    if ancestors and value is not None:
                        # A leaf ancestor becomes an interior node.
                        await session.execute(
                            delete(TreeNodeORM).where(TreeNodeORM.path.in_(ancestors))
                        )
                    for leaf_path, leaf in iter_leaves(value, path):
                        session.add(TreeNodeORM(path=leaf_path, value=leaf))
                    await session.flush()
                await session.commit()
        except SQLAlchemyError as e:
            raise InfrastructureError("Failed to commit tree update", details=str(e)) from e
