"""An in-memory cache of view objects, with informers and watches per kind."""

from __future__ import annotations

import enum
import logging
import threading
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from .delta import DeltaType
from .informer import EventHandler, Registration, ViewCacheInformer
from .objects import GroupVersionKind, ObjectKey, Unstructured, UnstructuredList
from .store import Store

_log = logging.getLogger(__name__)

DEFAULT_WATCH_CHANNEL_BUFFER = 256
_SEND_TIMEOUT = 1.0


class NotFoundError(LookupError):
    """Raised when a requested object is not in the cache."""


class BadRequestError(ValueError):
    """Raised when a cache request cannot be served as asked."""


class WatchEventType(str, enum.Enum):
    """The kind of change a watch event reports."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class WatchEvent:
    """A change reported by a watcher."""

    type: WatchEventType
    object: Unstructured


def _store_key(key: ObjectKey) -> str:
    return f"{key.namespace}/{key.name}" if key.namespace else key.name


class ViewCacheWatcher:
    """A bounded stream of watch events.

    Events already queued can still be read after the watcher is stopped.
    """

    def __init__(self, capacity: int = DEFAULT_WATCH_CHANNEL_BUFFER,
                 on_stop: Callable[[], None] | None = None,
                 logger: logging.Logger | None = None) -> None:
        self._events: deque[WatchEvent] = deque()
        self._capacity = capacity
        self._cond = threading.Condition()
        self._stopped = False
        self._on_stop = on_stop
        self._log = logger if logger is not None else _log

    def send_event(self, event_type: WatchEventType, obj: Any) -> None:
        """Queue an event, waiting up to a second for room in the buffer."""
        if not isinstance(obj, Unstructured):
            self._log.info("refusing to send an event on something that is not an object")
            return
        with self._cond:
            if self._stopped:
                return
            has_room = self._cond.wait_for(
                lambda: self._stopped or len(self._events) < self._capacity,
                timeout=_SEND_TIMEOUT)
            if self._stopped:
                return
            if not has_room:
                self._log.info("failed to send %s event, buffer might be full", event_type.value)
                return
            self._log.debug("watcher sending object %s", obj.dump())
            self._events.append(WatchEvent(event_type, obj))
            self._cond.notify_all()

    def next_event(self, timeout: float | None = None) -> WatchEvent | None:
        """Return the next event, or None on timeout or once stopped and drained."""
        with self._cond:
            self._cond.wait_for(lambda: self._events or self._stopped, timeout=timeout)
            if self._events:
                event = self._events.popleft()
                self._cond.notify_all()
                return event
            return None

    def stop(self) -> None:
        """Stop the watcher; further events are dropped."""
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
            self._cond.notify_all()
        if self._on_stop is not None:
            self._on_stop()

    @property
    def stopped(self) -> bool:
        with self._cond:
            return self._stopped

    def __iter__(self) -> Iterator[WatchEvent]:
        while True:
            event = self.next_event()
            if event is None:
                return
            yield event


class ViewCache:
    """Holds view objects by kind and tells informers and watchers about changes."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._lock = threading.RLock()
        self._caches: dict[GroupVersionKind, Store] = {}
        self._informers: dict[GroupVersionKind, ViewCacheInformer] = {}
        self._log = logger if logger is not None else _log

    def register_cache_for_kind(self, gvk: GroupVersionKind) -> None:
        """Create the store of a kind unless it already exists."""
        with self._lock:
            if gvk in self._caches:
                return
            self._log.debug("registering cache for new GVK %s", gvk)
            self._caches[gvk] = Store()

    def get_cache_for_kind(self, gvk: GroupVersionKind) -> Store:
        """Return the store of a kind, creating it on first use."""
        with self._lock:
            self.register_cache_for_kind(gvk)
            return self._caches[gvk]

    def register_informer_for_kind(self, gvk: GroupVersionKind) -> None:
        """Create the informer of a kind unless it already exists."""
        store = self.get_cache_for_kind(gvk)
        with self._lock:
            if gvk in self._informers:
                return
            self._log.debug("registering informer for new GVK %s", gvk)
            self._informers[gvk] = ViewCacheInformer(gvk, store, self._log)

    def get_informer_for_kind(self, gvk: GroupVersionKind) -> ViewCacheInformer:
        """Return the informer of a kind, creating it on first use."""
        with self._lock:
            self.register_informer_for_kind(gvk)
            return self._informers[gvk]

    def get_informer(self, obj: Unstructured) -> ViewCacheInformer:
        return self.get_informer_for_kind(obj.gvk)

    def remove_informer(self, obj: Unstructured) -> None:
        with self._lock:
            self._informers.pop(obj.gvk, None)

    def add(self, obj: Unstructured) -> None:
        """Insert an object and notify the handlers of its kind."""
        gvk = obj.gvk
        self._log.debug("add %s %s: %s", gvk, obj.key(), obj.dump())
        obj = obj.deep_copy()
        self.get_cache_for_kind(gvk).add(obj)
        self.get_informer_for_kind(gvk).trigger_event(DeltaType.ADDED, None, obj, False)

    def update(self, old_obj: Unstructured, new_obj: Unstructured) -> None:
        """Replace an object and notify the handlers; identical objects are ignored."""
        gvk = new_obj.gvk
        if old_obj.object == new_obj.object:
            self._log.debug("update: suppressing unchanged object %s %s", gvk, new_obj.key())
            return
        self._log.debug("update %s %s: %s", gvk, new_obj.key(), new_obj.dump())
        new_obj = new_obj.deep_copy()
        self.get_cache_for_kind(gvk).update(new_obj)
        self.get_informer_for_kind(gvk).trigger_event(DeltaType.UPDATED, old_obj, new_obj, False)

    def delete(self, obj: Unstructured) -> None:
        """Remove an object and notify the handlers of its kind."""
        gvk = obj.gvk
        self._log.debug("delete %s %s: %s", gvk, obj.key(), obj.dump())
        self.get_cache_for_kind(gvk).delete(obj)
        self.get_informer_for_kind(gvk).trigger_event(DeltaType.DELETED, None, obj, False)

    def index_field(self, obj: Unstructured, field: str,
                    extract_value: Callable[[Unstructured], list[str]]) -> None:
        """Field indexes are not supported by the view cache; always raises."""
        self._log.info("index_field called on the view cache for %s", obj.gvk)
        raise BadRequestError("field indexing is not supported for ViewCache")

    def get(self, key: ObjectKey, obj: Unstructured) -> Unstructured:
        """Fill ``obj`` with the stored object under ``key`` and return it."""
        if not isinstance(obj, Unstructured):
            raise BadRequestError("must be called with an object")
        gvk = obj.gvk
        self._log.debug("get %s %s", gvk, key)
        item = self.get_cache_for_kind(gvk).get_by_key(_store_key(key))
        if item is None:
            raise NotFoundError(f'{gvk.kind}.{gvk.group} "{key}" not found')
        obj.object = item.object
        return obj

    def list(self, object_list: UnstructuredList) -> UnstructuredList:
        """Append copies of all objects of the list's kind to it and return it."""
        gvk = object_list.gvk
        self._log.debug("list %s", gvk)
        for item in self.get_cache_for_kind(gvk).list():
            object_list.append(item)
        return object_list

    def dump(self, gvk: GroupVersionKind) -> list[str]:
        """Return a rendering of every object of a kind."""
        return [item.dump() for item in self.get_cache_for_kind(gvk).list()]

    def watch(self, object_list: UnstructuredList,
              stop_event: threading.Event | None = None) -> ViewCacheWatcher:
        """Watch the objects of the list's kind, starting with those already held.

        The watcher stops when ``stop_event`` is set or when it is stopped directly.
        """
        gvk = object_list.gvk
        self._log.debug("watch: adding watch for %s", gvk)
        informer = self.get_informer_for_kind(gvk)
        registration: list[Registration] = []

        def detach() -> None:
            if registration:
                informer.remove_event_handler(registration[0])

        watcher = ViewCacheWatcher(on_stop=detach, logger=self._log)
        handler = EventHandler(
            add_func=lambda obj: watcher.send_event(WatchEventType.ADDED, obj),
            update_func=lambda old, new: watcher.send_event(WatchEventType.MODIFIED, new),
            delete_func=lambda obj: watcher.send_event(WatchEventType.DELETED, obj),
        )
        registration.append(informer.add_event_handler(handler))

        if stop_event is not None:
            def wait_and_stop() -> None:
                stop_event.wait()
                self._log.debug("stopping watcher for %s", gvk)
                watcher.stop()

            threading.Thread(target=wait_and_stop, daemon=True).start()
        return watcher

    def start(self, stop_event: threading.Event) -> None:
        """Run every informer until ``stop_event`` is set. Blocks."""
        with self._lock:
            informers = list(self._informers.values())
        for informer in informers:
            threading.Thread(target=informer.run, args=(stop_event,), daemon=True).start()
        stop_event.wait()

    def wait_for_cache_sync(self) -> bool:
        # The view cache is always in sync.
        return True