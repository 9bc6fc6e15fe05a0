"""An informer that fans out events on view objects to registered handlers."""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .delta import DeltaType
from .objects import GroupVersionKind, Unstructured
from .store import Store

_log = logging.getLogger(__name__)


@dataclass
class EventHandler:
    """Receives add, update and delete events.

    Each callback is optional; events without a callback are ignored.
    Subclasses may override the ``on_*`` methods instead.
    """

    add_func: Callable[[Unstructured], None] | None = None
    update_func: Callable[[Unstructured | None, Unstructured], None] | None = None
    delete_func: Callable[[Unstructured], None] | None = None

    def on_add(self, obj: Unstructured, is_initial_list: bool) -> None:
        if self.add_func is not None:
            self.add_func(obj)

    def on_update(self, old_obj: Unstructured | None, new_obj: Unstructured) -> None:
        if self.update_func is not None:
            self.update_func(old_obj, new_obj)

    def on_delete(self, obj: Unstructured) -> None:
        if self.delete_func is not None:
            self.delete_func(obj)


@dataclass(frozen=True)
class Registration:
    """The handle returned when an event handler is registered."""

    id: int
    handler: EventHandler

    def has_synced(self) -> bool:
        return True


Transform = Callable[[Unstructured], Any]


class ViewCacheInformer:
    """Delivers events about the objects of one kind held in a store."""

    def __init__(self, gvk: GroupVersionKind, store: Store,
                 logger: logging.Logger | None = None) -> None:
        self.gvk = gvk
        self._store = store
        self._handlers: dict[int, Registration] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._transform: Transform | None = None
        self._stopped = threading.Event()
        self._log = logger if logger is not None else _log

    def add_event_handler(self, handler: EventHandler) -> Registration:
        """Register a handler and replay the current objects as add events."""
        with self._lock:
            registration = Registration(next(self._ids), handler)
            self._handlers[registration.id] = registration

        initial = self._store.list()
        self._log.debug("registering event handler %d for %s: sending %d initial objects",
                        registration.id, self.gvk, len(initial))
        for obj in initial:
            self.trigger_event(DeltaType.ADDED, None, obj, True)
        return registration

    def remove_event_handler(self, registration: Registration) -> None:
        """Unregister a handler; raises TypeError for a foreign registration."""
        if not isinstance(registration, Registration):
            raise TypeError("unknown registration type")
        with self._lock:
            self._handlers.pop(registration.id, None)
        self._log.debug("removed event handler %d for %s", registration.id, self.gvk)

    def trigger_event(self, event_type: DeltaType, old_obj: Unstructured | None,
                      new_obj: Unstructured, is_initial_list: bool = False) -> None:
        """Send an event on ``new_obj`` to every registered handler.

        Only update events use ``old_obj``. Each handler gets its own copy of
        the object; events of other types are ignored.
        """
        with self._lock:
            registrations = list(self._handlers.values())
            transform = self._transform

        if not registrations:
            self._log.debug("suppressing %s event on %s: no handlers",
                            getattr(event_type, "value", event_type), new_obj.dump())
            return

        if transform is not None:
            try:
                item = transform(new_obj.deep_copy())
            except Exception:
                self._log.exception("failed to transform object")
                return
            if not isinstance(item, Unstructured):
                self._log.info("transform must produce an object")
                return
            new_obj = item

        for registration in registrations:
            handler = registration.handler
            if event_type == DeltaType.ADDED:
                handler.on_add(new_obj.deep_copy(), is_initial_list)
            elif event_type == DeltaType.UPDATED:
                handler.on_update(old_obj, new_obj.deep_copy())
            elif event_type == DeltaType.DELETED:
                handler.on_delete(new_obj.deep_copy())
            else:
                self._log.debug("ignoring %s event", getattr(event_type, "value", event_type))

    def store(self) -> Store:
        return self._store

    def set_transform(self, transform: Transform | None) -> None:
        """Set a function applied to each object before it is handed to handlers."""
        with self._lock:
            self._transform = transform

    def run(self, stop_event: threading.Event) -> None:
        """Block until ``stop_event`` is set, then mark the informer stopped."""
        try:
            stop_event.wait()
        finally:
            self._stopped.set()

    def has_synced(self) -> bool:
        # There is no API server to sync with: always in sync.
        return True

    def is_stopped(self) -> bool:
        return self._stopped.is_set()