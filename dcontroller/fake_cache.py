"""An in-memory stand-in for a runtime object cache, with fake informers."""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from typing import Protocol

from .informer import EventHandler, Registration
from .objects import GroupVersionKind, ObjectKey, Unstructured, UnstructuredList
from .store import Store
from .view_cache import NotFoundError


class Lister(Protocol):
    """Anything that can list the objects it holds."""

    def list(self) -> list[Unstructured]: ...


def _key_string(key: ObjectKey) -> str:
    return f"{key.namespace}/{key.name}" if key.namespace else key.name


class FakeInformer:
    """An informer whose events are raised by hand.

    Registering a handler replays the objects of the indexer as initial add events.
    """

    def __init__(self, indexer: Lister, synced: bool = False) -> None:
        self.indexer = indexer
        self.synced = synced
        self.run_count = 0
        self._handlers: dict[int, Registration] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def _registered(self) -> list[EventHandler]:
        with self._lock:
            return [reg.handler for reg in self._handlers.values()]

    def add_event_handler(self, handler: EventHandler) -> Registration:
        """Register a handler and send it the current objects."""
        with self._lock:
            registration = Registration(next(self._ids), handler)
            self._handlers[registration.id] = registration
        for item in self.indexer.list():
            handler.on_add(item, True)
        return registration

    def remove_event_handler(self, registration: Registration) -> None:
        with self._lock:
            self._handlers.pop(registration.id, None)

    def add(self, obj: Unstructured) -> None:
        """Send an add event on ``obj`` to every handler."""
        for handler in self._registered():
            handler.on_add(obj, False)

    def update(self, old_obj: Unstructured, new_obj: Unstructured) -> None:
        """Send an update event to every handler."""
        for handler in self._registered():
            handler.on_update(old_obj, new_obj)

    def delete(self, obj: Unstructured) -> None:
        """Send a delete event on ``obj`` to every handler."""
        for handler in self._registered():
            handler.on_delete(obj)

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Count the run; a fake informer has nothing to do."""
        self.run_count += 1

    def has_synced(self) -> bool:
        return self.synced


class FakeRuntimeCache:
    """A runtime cache backed by a single in-memory store."""

    def __init__(self, store: Store | None = None) -> None:
        self.store = store if store is not None else Store()
        self.informers_by_gvk: dict[GroupVersionKind, FakeInformer] = {}
        self.error: BaseException | None = None
        self.synced: bool | None = None

    def get_informer_for_kind(self, gvk: GroupVersionKind) -> FakeInformer:
        """Return the informer of a kind, creating it on first use."""
        informer = self.informers_by_gvk.get(gvk)
        if informer is None:
            informer = FakeInformer(self.store)
            self.informers_by_gvk[gvk] = informer
        return informer

    def get_informer(self, obj: Unstructured) -> FakeInformer:
        if not isinstance(obj, Unstructured):
            raise TypeError("expecting an object")
        return self.get_informer_for_kind(obj.gvk)

    def remove_informer(self, obj: Unstructured) -> None:
        if not isinstance(obj, Unstructured):
            raise TypeError("expecting an object")
        self.informers_by_gvk.pop(obj.gvk, None)

    def wait_for_cache_sync(self) -> bool:
        return True if self.synced is None else self.synced

    def start(self, stop_event: threading.Event | None = None) -> None:
        """Return at once, raising the configured error if there is one."""
        if self.error is not None:
            raise self.error

    def index_field(self, obj: Unstructured, field: str,
                    extract_value: Callable[[Unstructured], list[str]]) -> None:
        """Accept and ignore a field index."""

    def get(self, key: ObjectKey, obj: Unstructured) -> Unstructured:
        """Fill ``obj`` with the stored object under ``key`` and return it."""
        item = self.store.get_by_key(_key_string(key))
        if item is None:
            gvk = obj.gvk
            raise NotFoundError(f'{gvk.kind}.{gvk.group} "{_key_string(key)}" not found')
        obj.object = item.object
        return obj

    def list(self, object_list: UnstructuredList) -> UnstructuredList:
        """Append copies of all stored objects to the list and return it."""
        for item in self.store.list():
            object_list.append(item)
        return object_list

    def add(self, obj: Unstructured) -> None:
        """Store an object and raise an add event for it."""
        if not isinstance(obj, Unstructured):
            raise TypeError("add: object must be an unstructured object")
        self.store.add(obj)
        self.get_informer(obj).add(obj)

    def update(self, old_obj: Unstructured, new_obj: Unstructured) -> None:
        """Replace a stored object and raise an update event for it."""
        if not isinstance(old_obj, Unstructured):
            raise TypeError("update: old object must be an unstructured object")
        if not isinstance(new_obj, Unstructured):
            raise TypeError("update: new object must be an unstructured object")
        self.store.update(new_obj)
        self.get_informer(new_obj).update(old_obj, new_obj)

    def delete(self, obj: Unstructured) -> None:
        """Remove a stored object and raise a delete event for it."""
        if not isinstance(obj, Unstructured):
            raise TypeError("delete: object must be an unstructured object")
        self.store.delete(obj)
        self.get_informer(obj).delete(obj)