# dcontroller

Building blocks for declarative controllers that work on *views*:
schemaless, in-memory objects in the `view.dcontroller.io` API group.

## What is in the package

- **Objects** (`dcontroller.objects`): `Unstructured` objects held as nested
  dictionaries, `UnstructuredList`, `GroupVersion`, `GroupVersionKind`, `ObjectKey`,
  `parse_gvk`, and helpers `new_gvk`, `new_view_object`, `new_view_object_list` and
  `new_view_object_from_native`.
- **Controller specifications** (`dcontroller.api`): `Controller`, `Source`, `Target`,
  `Pipeline`, `Operator` and their status types (`ControllerStatus`, `Condition`, ...).
  Specifications are read from plain data or YAML with `parse_controller`,
  `parse_controller_yaml` and `parse_operator`, and written back with
  `controller_to_dict`. Invalid specifications raise `SpecError`.
- **Error reporting** (`dcontroller.status`): an `ErrorReporter` that keeps the ten most
  recent errors and hands them to an optional `on_error` callback under a `Sometimes`
  rate limiter (by default the first three errors, then at most one every two seconds).
  `controller_status` turns a reporter into a `ControllerStatus` with a `Ready`
  condition; `trim` shortens long error messages.
- **Deltas** (`dcontroller.delta`): `Delta` and `DeltaType` describe a change on an object.
- **Caching**:
  - `dcontroller.store.Store`: a thread-safe store keyed by `namespace/name` that copies
    objects on the way in and out.
  - `dcontroller.informer.ViewCacheInformer`: fans out add, update and delete events to
    registered `EventHandler`s, replaying the stored objects to each new handler.
  - `dcontroller.view_cache.ViewCache`: stores view objects per kind, with `get`, `list`,
    `add`, `update`, `delete` and `watch`. A `ViewCacheWatcher` yields `WatchEvent`s;
    missing objects raise `NotFoundError`.
  - `dcontroller.fake_cache.FakeRuntimeCache` and `FakeInformer`: an in-memory stand-in
    for a cache of native objects, useful in tests.
  - `dcontroller.composite_cache.CompositeCache`: sends requests on view objects to a
    `ViewCache` and everything else to a default cache (a `FakeRuntimeCache` unless
    another is given).
- **Build information** (`dcontroller.buildinfo.BuildInfo`).

## Installation

```
pip install dcontroller
```

## Example: a view cache with a watcher

```python
import threading

from dcontroller.objects import new_view_object, new_view_object_list
from dcontroller.view_cache import ViewCache, WatchEventType

cache = ViewCache()
stop = threading.Event()
watcher = cache.watch(new_view_object_list("view"), stop)

obj = new_view_object("view")
obj.set_content({"data": "watch-data"})
obj.set_name("ns", "test-watch")
cache.add(obj)

event = watcher.next_event(timeout=1.0)
assert event.type is WatchEventType.ADDED

retrieved = new_view_object("view")
cache.get(obj.key(), retrieved)
assert retrieved.dump() == obj.dump()

stop.set()
```

## Example: parsing a controller specification

```python
from dcontroller.api import parse_controller_yaml

controller = parse_controller_yaml("""
name: test
sources:
  - kind: pod
  - kind: dep
pipeline:
  '@join':
    '@eq': ["$.pod.metadata.labels.app", "$.dep.metadata.labels.app"]
  '@aggregate':
    - '@project':
        metadata:
          name: $.pod.metadata.name
target:
  kind: rs
  type: Updater
""")
print(controller.name, [s.kind for s in controller.sources], controller.target.kind)
```

## What the package does not do

- It does not run controllers. A `Pipeline` holds its `@join` and `@aggregate`
  expressions as plain data; nothing in the package evaluates them or writes results
  into a target.
- It does not talk to a Kubernetes API server. Native objects are only served by the
  in-memory `FakeRuntimeCache` or by a default cache you pass to `CompositeCache`.
- It has no command-line program.

## Running the tests

```
pip install -e ".[test]"
pytest
```