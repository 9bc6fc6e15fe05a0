import threading
import time

import pytest

from dcontroller.objects import (
    ObjectKey,
    Unstructured,
    new_gvk,
    new_view_object,
    new_view_object_list,
)
from dcontroller.view_cache import (
    BadRequestError,
    NotFoundError,
    ViewCache,
    ViewCacheWatcher,
    WatchEventType,
)

TIMEOUT = 1.0


@pytest.fixture
def cache():
    return ViewCache()


@pytest.fixture
def stop_event():
    event = threading.Event()
    yield event
    event.set()


def make_view(namespace, name, content):
    obj = new_view_object("view")
    obj.set_content(content)
    obj.set_name(namespace, name)
    return obj


def later(fn, *args):
    def run():
        time.sleep(0.025)
        fn(*args)

    thread = threading.Thread(target=run)
    thread.start()
    return thread


def test_register_view(cache):
    cache.register_cache_for_kind(new_gvk("view"))
    assert cache.get_cache_for_kind(new_gvk("view")).list() == []


def test_get_added_object(cache):
    obj = make_view("ns", "test-1", {"a": 1})
    cache.add(obj)
    retrieved = obj.deep_copy()
    result = cache.get(retrieved.key(), retrieved)
    assert result.object == obj.object
    assert retrieved.object == obj.object


def test_get_returns_independent_copy(cache):
    obj = make_view("ns", "test-1", {"a": 1})
    cache.add(obj)
    retrieved = cache.get(obj.key(), new_view_object("view"))
    retrieved.object["a"] = 2
    again = cache.get(obj.key(), new_view_object("view"))
    assert again.object["a"] == 1


def test_get_non_existent_object(cache):
    obj = new_view_object("view")
    obj.set_name("", "non-existent")
    with pytest.raises(NotFoundError):
        cache.get(obj.key(), obj)


def test_get_cluster_scoped_object(cache):
    obj = make_view("", "global", {"x": "y"})
    cache.add(obj)
    got = cache.get(ObjectKey("", "global"), new_view_object("view"))
    assert got.object == obj.object


def test_get_requires_an_object(cache):
    with pytest.raises(BadRequestError):
        cache.get(ObjectKey("ns", "x"), {"kind": "view"})


def test_list_all_added_objects(cache):
    objects = [
        make_view("ns1", "test-1", {"a": 1}),
        make_view("ns2", "test-2", {"b": 2}),
        make_view("ns3", "test-3", {"c": 3}),
    ]
    for obj in objects:
        cache.add(obj)
    result = cache.list(new_view_object_list("view"))
    assert len(result.items) == 3
    contents = [item.object for item in result.items]
    for obj in objects:
        assert obj.object in contents


def test_list_empty(cache):
    result = cache.list(new_view_object_list("view"))
    assert result.items == []


def test_list_only_returns_own_kind(cache):
    cache.add(make_view("ns", "a", {"a": 1}))
    other = new_view_object("other")
    other.set_name("ns", "b")
    cache.add(other)
    result = cache.list(new_view_object_list("other"))
    assert [item.name for item in result.items] == ["b"]


def test_update_replaces_object(cache):
    obj = make_view("ns", "u", {"data": "old"})
    cache.add(obj)
    updated = make_view("ns", "u", {"data": "new"})
    cache.update(obj, updated)
    got = cache.get(obj.key(), new_view_object("view"))
    assert got.object["data"] == "new"


def test_delete_removes_object(cache):
    obj = make_view("ns", "d", {"data": "x"})
    cache.add(obj)
    cache.delete(obj)
    with pytest.raises(NotFoundError):
        cache.get(obj.key(), new_view_object("view"))


def test_index_field_not_supported(cache):
    with pytest.raises(BadRequestError):
        cache.index_field(new_view_object("view"), "spec.x", lambda o: [])


def test_dump(cache):
    cache.add(make_view("ns", "d", {"data": "x"}))
    dumps = cache.dump(new_gvk("view"))
    assert len(dumps) == 1
    assert '"data":"x"' in dumps[0]


def test_informer_is_shared_per_kind(cache):
    first = cache.get_informer_for_kind(new_gvk("view"))
    second = cache.get_informer(new_view_object("view"))
    assert first is second
    cache.remove_informer(new_view_object("view"))
    assert cache.get_informer_for_kind(new_gvk("view")) is not first


def test_wait_for_cache_sync(cache):
    assert cache.wait_for_cache_sync() is True


def test_watch_notifies_existing_objects(cache, stop_event):
    obj = make_view("ns", "test-watch", {"data": "watch-data"})
    cache.add(obj)
    watcher = cache.watch(new_view_object_list("view"), stop_event)
    event = watcher.next_event(TIMEOUT)
    assert event is not None
    assert event.type == WatchEventType.ADDED
    assert event.object.object == obj.object


def test_watch_notifies_added_objects(cache, stop_event):
    watcher = cache.watch(new_view_object_list("view"), stop_event)
    obj = make_view("ns", "test-watch", {"data": "watch-data"})
    thread = later(cache.add, obj)
    event = watcher.next_event(TIMEOUT)
    thread.join()
    assert event is not None
    assert event.type == WatchEventType.ADDED
    assert event.object.object == obj.object


def test_watch_notifies_updated_objects(cache, stop_event):
    watcher = cache.watch(new_view_object_list("view"), stop_event)
    obj = make_view("ns", "test-update", {"data": "original data"})
    cache.add(obj)
    updated = make_view("ns", "test-update", {"data": "updated data"})
    thread = later(cache.update, obj, updated)

    event = watcher.next_event(TIMEOUT)
    assert event is not None
    assert event.type == WatchEventType.ADDED
    assert event.object.object == obj.object

    event = watcher.next_event(TIMEOUT)
    thread.join()
    assert event is not None
    assert event.type == WatchEventType.MODIFIED
    assert event.object.object == updated.object


def test_watch_notifies_deleted_objects(cache, stop_event):
    watcher = cache.watch(new_view_object_list("view"), stop_event)
    obj = make_view("ns", "test-delete", {"data": "original data"})
    cache.add(obj)
    thread = later(cache.delete, obj)

    event = watcher.next_event(TIMEOUT)
    assert event is not None
    assert event.type == WatchEventType.ADDED
    assert event.object.object == obj.object

    event = watcher.next_event(TIMEOUT)
    thread.join()
    assert event is not None
    assert event.type == WatchEventType.DELETED
    assert event.object.object == obj.object


def test_unchanged_update_is_suppressed(cache, stop_event):
    obj = make_view("ns", "same", {"data": "x"})
    cache.add(obj)
    watcher = cache.watch(new_view_object_list("view"), stop_event)
    assert watcher.next_event(TIMEOUT).type == WatchEventType.ADDED
    cache.update(obj, obj.deep_copy())
    assert watcher.next_event(0.05) is None


def test_watch_times_out_without_events(cache, stop_event):
    watcher = cache.watch(new_view_object_list("view"), stop_event)
    assert watcher.next_event(0.05) is None


def test_stopped_watcher_drops_new_events(cache):
    watcher = cache.watch(new_view_object_list("view"))
    watcher.stop()
    assert watcher.stopped is True
    cache.add(make_view("ns", "late", {"a": 1}))
    assert watcher.next_event(0.05) is None
    assert list(watcher) == []


def test_stop_event_stops_watcher(cache):
    stop = threading.Event()
    watcher = cache.watch(new_view_object_list("view"), stop)
    stop.set()
    deadline = time.monotonic() + TIMEOUT
    while not watcher.stopped and time.monotonic() < deadline:
        time.sleep(0.01)
    assert watcher.stopped is True


def test_queued_events_survive_stop(cache):
    obj = make_view("ns", "kept", {"a": 1})
    cache.add(obj)
    watcher = cache.watch(new_view_object_list("view"))
    watcher.stop()
    events = list(watcher)
    assert [e.type for e in events] == [WatchEventType.ADDED]
    assert events[0].object.object == obj.object


def test_watcher_rejects_non_objects():
    watcher = ViewCacheWatcher()
    watcher.send_event(WatchEventType.ADDED, {"kind": "view"})
    assert watcher.next_event(0.01) is None
    watcher.send_event(WatchEventType.ADDED, Unstructured({"kind": "view"}))
    event = watcher.next_event(0.01)
    assert event.object.object == {"kind": "view"}


def test_start_blocks_until_stopped(cache):
    cache.get_informer_for_kind(new_gvk("view"))
    stop = threading.Event()
    thread = threading.Thread(target=cache.start, args=(stop,))
    thread.start()
    time.sleep(0.02)
    assert thread.is_alive()
    stop.set()
    thread.join(TIMEOUT)
    assert not thread.is_alive()
    informer = cache.get_informer_for_kind(new_gvk("view"))
    deadline = time.monotonic() + TIMEOUT
    while not informer.is_stopped() and time.monotonic() < deadline:
        time.sleep(0.01)
    assert informer.is_stopped() is True