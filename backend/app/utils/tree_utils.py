"""
Path and value helpers for the realtime tree.

Paths are '/'-separated keys; the empty path is the root. Values are JSON
compatible; dicts are interior nodes and everything else is a leaf. Empty
dicts and None are equivalent to "no value".
"""

from __future__ import annotations

import copy
from typing import Any, Iterator, Optional

from app.core.exceptions import ValidationError
from app.interfaces.tree_store import TreeQuery

_FORBIDDEN_KEY_CHARS = set(".#$[]")


def is_valid_key(key: str) -> bool:
    """Non-empty, no '/' and none of ``.#$[]``."""
    return bool(key) and "/" not in key and not (_FORBIDDEN_KEY_CHARS & set(key))


def split_path(path: str) -> list[str]:
    """Split a path into validated keys."""
    keys = [key for key in (path or "").split("/") if key]
    for key in keys:
        if not is_valid_key(key):
            raise ValidationError(f"Invalid key in path: {path!r}")
    return keys


def join_path(*parts: str) -> str:
    keys: list[str] = []
    for part in parts:
        keys.extend(split_path(part))
    return "/".join(keys)


def is_related(path_a: str, path_b: str) -> bool:
    """True when one path is an ancestor of (or equal to) the other."""
    keys_a = split_path(path_a)
    keys_b = split_path(path_b)
    shortest = min(len(keys_a), len(keys_b))
    return keys_a[:shortest] == keys_b[:shortest]


def normalize(value: Any) -> Any:
    """Drop None children and empty dicts; return None for an empty value."""
    if isinstance(value, dict):
        cleaned = {}
        for key, child in value.items():
            split_path(str(key))
            child = normalize(child)
            if child is not None:
                cleaned[str(key)] = child
        return cleaned or None
    if isinstance(value, (list, tuple)):
        return [normalize(item) for item in value]
    return value


def get_at(tree: Any, keys: list[str], exclude: tuple[str, ...] = ()) -> Any:
    """
    Copy of the value at ``keys``.

    With ``exclude``, those keys are left out of every child of the value
    without being copied.
    """
    node = tree
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    if exclude and isinstance(node, dict):
        return prune_children(node, exclude)
    return copy.deepcopy(node)


def prune_children(value: dict[str, Any], exclude: tuple[str, ...]) -> Any:
    pruned = {}
    for key, child in value.items():
        if isinstance(child, dict):
            child = {name: copy.deepcopy(item) for name, item in child.items() if name not in exclude}
            if not child:
                continue
        else:
            child = copy.deepcopy(child)
        pruned[key] = child
    return pruned or None


def set_at(tree: dict[str, Any], keys: list[str], value: Any) -> dict[str, Any]:
    """Write ``value`` at ``keys`` and prune emptied parents; returns the root."""
    if not keys:
        return normalize(value) or {}
    value = normalize(value)
    head, rest = keys[0], keys[1:]
    child = tree.get(head)
    if rest:
        child = set_at(child if isinstance(child, dict) else {}, rest, value)
        value = child or None
    if value is None:
        tree.pop(head, None)
    else:
        tree[head] = value
    return tree


def iter_leaves(value: Any, prefix: str = "") -> Iterator[tuple[str, Any]]:
    """Yield (path, leaf value) pairs of a normalized value."""
    if isinstance(value, dict):
        for key, child in value.items():
            yield from iter_leaves(child, join_path(prefix, key))
    elif value is not None:
        yield prefix, value


def build_tree(leaves: list[tuple[list[str], Any]]) -> Any:
    """Rebuild a nested value from (relative keys, leaf value) pairs."""
    root: Any = None
    for keys, leaf in leaves:
        if not keys:
            return leaf
        if not isinstance(root, dict):
            root = {}
        node = root
        for key in keys[:-1]:
            nxt = node.get(key)
            if not isinstance(nxt, dict):
                nxt = {}
                node[key] = nxt
            node = nxt
        node[keys[-1]] = leaf
    return root


# ===========================================
# Query evaluation
# ===========================================


def _value_rank(value: Any) -> tuple:
    """Sort rank: missing, false, true, numbers, strings, objects."""
    if value is None:
        return (0,)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4,)


def _key_rank(key: str) -> tuple:
    """Integer-like keys sort numerically before all other keys."""
    if key.lstrip("-").isdigit() and len(key) < 19:
        return (0, int(key), "")
    return (1, 0, key)


def _matches(value: Any, expected: Any) -> bool:
    return value == expected and isinstance(value, bool) == isinstance(expected, bool)


def apply_query(value: Any, query: Optional[TreeQuery]) -> Any:
    """Filter, order and window the children of ``value``."""
    if query is None:
        return value
    if not isinstance(value, dict):
        return None

    items = list(value.items())
    if query.order_by_child:
        child_keys = split_path(query.order_by_child)
        keyed = [(get_at(child, child_keys), key, child) for key, child in items]
        if query.equal_to is not None:
            keyed = [entry for entry in keyed if _matches(entry[0], query.equal_to)]
        keyed.sort(key=lambda entry: (_value_rank(entry[0]), _key_rank(entry[1])))
        items = [(key, child) for _, key, child in keyed]
    else:
        if query.equal_to is not None:
            items = [(key, child) for key, child in items if _matches(key, query.equal_to)]
        items.sort(key=lambda item: _key_rank(item[0]))

    if query.limit_to_last is not None:
        items = items[-query.limit_to_last:] if query.limit_to_last > 0 else []

    return dict(items) or None
