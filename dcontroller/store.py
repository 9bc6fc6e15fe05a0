"""A thread-safe object store that keeps deep copies of what it holds."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from .objects import Unstructured


def meta_namespace_key(obj: Unstructured) -> str:
    """Return the ``namespace/name`` key of an object, or just the name if it has no namespace."""
    if obj.namespace:
        return f"{obj.namespace}/{obj.name}"
    return obj.name


class Store:
    """Objects keyed by namespace and name.

    Objects are copied on the way in and on the way out, so callers never
    share state with the store.
    """

    def __init__(self) -> None:
        self._items: dict[str, Unstructured] = {}
        self._lock = threading.RLock()

    def add(self, obj: Unstructured) -> None:
        """Insert the object under its key."""
        with self._lock:
            self._items[meta_namespace_key(obj)] = obj.deep_copy()

    def update(self, obj: Unstructured) -> None:
        """Replace the object stored under its key."""
        self.add(obj)

    def delete(self, obj: Unstructured) -> None:
        """Remove the object stored under its key, if any."""
        with self._lock:
            self._items.pop(meta_namespace_key(obj), None)

    def list(self) -> list[Unstructured]:
        """Return copies of all stored objects."""
        with self._lock:
            return [item.deep_copy() for item in self._items.values()]

    def list_keys(self) -> list[str]:
        with self._lock:
            return list(self._items)

    def get(self, obj: Unstructured) -> Unstructured | None:
        """Return a copy of the object stored under the key of ``obj``, or None."""
        return self.get_by_key(meta_namespace_key(obj))

    def get_by_key(self, key: str) -> Unstructured | None:
        """Return a copy of the object stored under ``key``, or None."""
        with self._lock:
            item = self._items.get(key)
            return None if item is None else item.deep_copy()

    def by_namespace(self, namespace: str) -> list[Unstructured]:
        """Return copies of all stored objects in the given namespace."""
        with self._lock:
            return [item.deep_copy() for item in self._items.values()
                    if item.namespace == namespace]

    def replace(self, objs: Iterable[Unstructured]) -> None:
        """Drop the contents of the store and hold the given objects instead."""
        fresh = {meta_namespace_key(obj): obj.deep_copy() for obj in objs}
        with self._lock:
            self._items = fresh

    def resync(self) -> None:
        """Rebuild the key index from the stored objects themselves."""
        with self._lock:
            self._items = {meta_namespace_key(item): item
                           for item in self._items.values()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items