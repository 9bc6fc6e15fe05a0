import threading

import pytest

from dcontroller.fake_cache import FakeInformer, FakeRuntimeCache
from dcontroller.informer import EventHandler
from dcontroller.objects import GroupVersionKind, ObjectKey, Unstructured, UnstructuredList
from dcontroller.store import Store
from dcontroller.view_cache import NotFoundError

POD_GVK = GroupVersionKind("", "v1", "Pod")


class Recorder(EventHandler):
    def __init__(self):
        super().__init__()
        self.events = []

    def on_add(self, obj, is_initial_list):
        self.events.append(("add", obj.name, is_initial_list))

    def on_update(self, old_obj, new_obj):
        self.events.append(("update", old_obj.name, new_obj.name))

    def on_delete(self, obj):
        self.events.append(("delete", obj.name))


def make_pod(name="testpod", namespace="testns"):
    obj = Unstructured()
    obj.set_gvk(POD_GVK)
    obj.set_name(namespace, name)
    obj.object["spec"] = {"containers": [{"name": "nginx", "image": "nginx"}]}
    return obj


def test_informer_replays_initial_list():
    store = Store()
    store.add(make_pod("a"))
    informer = FakeInformer(store)
    rec = Recorder()
    informer.add_event_handler(rec)
    assert rec.events == [("add", "a", True)]


def test_informer_events_reach_handlers():
    informer = FakeInformer(Store())
    rec = Recorder()
    informer.add_event_handler(rec)
    pod = make_pod()
    informer.add(pod)
    informer.update(pod, pod)
    informer.delete(pod)
    assert rec.events == [("add", "testpod", False),
                          ("update", "testpod", "testpod"),
                          ("delete", "testpod")]


def test_informer_removed_handler_gets_nothing():
    informer = FakeInformer(Store())
    rec = Recorder()
    reg = informer.add_event_handler(rec)
    informer.remove_event_handler(reg)
    informer.add(make_pod())
    assert rec.events == []


def test_informer_run_counts_and_synced():
    informer = FakeInformer(Store())
    informer.run(threading.Event())
    informer.run(threading.Event())
    assert informer.run_count == 2
    assert informer.has_synced() is False
    informer.synced = True
    assert informer.has_synced() is True


def test_add_then_get_round_trip():
    cache = FakeRuntimeCache()
    pod = make_pod()
    cache.add(pod)
    target = Unstructured()
    target.set_gvk(POD_GVK)
    got = cache.get(ObjectKey("testns", "testpod"), target)
    assert got == pod
    assert target == pod


def test_get_missing_raises():
    cache = FakeRuntimeCache()
    with pytest.raises(NotFoundError):
        cache.get(ObjectKey("testns", "missing"), make_pod())


def test_add_triggers_informer_event():
    cache = FakeRuntimeCache()
    rec = Recorder()
    cache.get_informer_for_kind(POD_GVK).add_event_handler(rec)
    cache.add(make_pod())
    assert rec.events == [("add", "testpod", False)]


def test_update_stores_and_notifies():
    cache = FakeRuntimeCache()
    old = make_pod()
    cache.add(old)
    rec = Recorder()
    cache.get_informer(old).add_event_handler(rec)
    new = old.deep_copy()
    new.labels = {"app": "x"}
    cache.update(old, new)
    assert cache.get(old.key(), make_pod()).labels == {"app": "x"}
    assert rec.events[-1] == ("update", "testpod", "testpod")


def test_delete_removes_and_notifies():
    cache = FakeRuntimeCache()
    pod = make_pod()
    cache.add(pod)
    rec = Recorder()
    cache.get_informer(pod).add_event_handler(rec)
    cache.delete(pod)
    assert rec.events[-1] == ("delete", "testpod")
    with pytest.raises(NotFoundError):
        cache.get(pod.key(), make_pod())


def test_list_returns_all_objects():
    cache = FakeRuntimeCache()
    cache.add(make_pod("a"))
    cache.add(make_pod("b"))
    result = cache.list(UnstructuredList())
    assert sorted(o.name for o in result) == ["a", "b"]


def test_informer_is_cached_per_kind_and_removable():
    cache = FakeRuntimeCache()
    first = cache.get_informer_for_kind(POD_GVK)
    assert cache.get_informer(make_pod()) is first
    cache.remove_informer(make_pod())
    assert POD_GVK not in cache.informers_by_gvk


def test_non_object_rejected():
    cache = FakeRuntimeCache()
    with pytest.raises(TypeError):
        cache.add({"kind": "Pod"})
    with pytest.raises(TypeError):
        cache.get_informer("pod")


def test_sync_and_start_error():
    cache = FakeRuntimeCache()
    assert cache.wait_for_cache_sync() is True
    cache.synced = False
    assert cache.wait_for_cache_sync() is False
    cache.error = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        cache.start(threading.Event())