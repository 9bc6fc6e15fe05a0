"""A cache serving views from the view cache and everything else from a default cache."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from .fake_cache import FakeRuntimeCache
from .objects import VIEW_GROUP_VERSION, GroupVersionKind, ObjectKey, Unstructured, UnstructuredList
from .view_cache import ViewCache

_log = logging.getLogger(__name__)


class CompositeCache:
    """Routes requests on view objects to a view cache and the rest to a default cache."""

    def __init__(self, default_cache: Any = None, logger: logging.Logger | None = None) -> None:
        self._logger = logger if logger is not None else _log
        self._default_cache = default_cache if default_cache is not None else FakeRuntimeCache()
        self._view_cache = ViewCache(self._logger)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def default_cache(self) -> Any:
        return self._default_cache

    def view_cache(self) -> ViewCache:
        return self._view_cache

    @staticmethod
    def _is_view(gvk: GroupVersionKind) -> bool:
        return gvk.group == VIEW_GROUP_VERSION.group

    def _cache_for(self, gvk: GroupVersionKind) -> Any:
        return self._view_cache if self._is_view(gvk) else self._default_cache

    def get_informer(self, obj: Unstructured) -> Any:
        self._logger.debug("get-informer %s", obj.gvk)
        return self._cache_for(obj.gvk).get_informer(obj)

    def get_informer_for_kind(self, gvk: GroupVersionKind) -> Any:
        self._logger.debug("get-informer-for-kind %s", gvk)
        return self._cache_for(gvk).get_informer_for_kind(gvk)

    def remove_informer(self, obj: Unstructured) -> None:
        self._logger.debug("remove-informer %s", obj.gvk)
        self._cache_for(obj.gvk).remove_informer(obj)

    def start(self, stop_event: threading.Event) -> None:
        """Start the view cache in the background, then run the default cache."""
        self._logger.debug("starting")
        threading.Thread(target=self._view_cache.start, args=(stop_event,), daemon=True).start()
        self._default_cache.start(stop_event)

    def wait_for_cache_sync(self) -> bool:
        return self._view_cache.wait_for_cache_sync() and self._default_cache.wait_for_cache_sync()

    def index_field(self, obj: Unstructured, field: str,
                    extract_value: Callable[[Unstructured], list[str]]) -> None:
        self._cache_for(obj.gvk).index_field(obj, field, extract_value)

    def get(self, key: ObjectKey, obj: Unstructured) -> Unstructured:
        self._logger.debug("get %s %s", obj.gvk, key)
        return self._cache_for(obj.gvk).get(key, obj)

    def list(self, object_list: UnstructuredList) -> UnstructuredList:
        self._logger.debug("list %s", object_list.gvk)
        return self._cache_for(object_list.gvk).list(object_list)