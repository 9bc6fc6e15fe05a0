"""Group/version/kind identifiers and schemaless Kubernetes-style objects."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Iterator


@dataclass(frozen=True)
class GroupVersion:
    """An API group together with a version."""

    group: str
    version: str

    def with_kind(self, kind: str) -> GroupVersionKind:
        return GroupVersionKind(self.group, self.version, kind)

    def __str__(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


@dataclass(frozen=True)
class GroupVersionKind:
    """The full type of an object: API group, version and kind."""

    group: str = ""
    version: str = ""
    kind: str = ""

    def api_version(self) -> str:
        """Return the ``apiVersion`` string of the type."""
        return str(GroupVersion(self.group, self.version))

    def __str__(self) -> str:
        return f"{self.group}/{self.version}, Kind={self.kind}"


def parse_gvk(api_version: str, kind: str) -> GroupVersionKind:
    """Build a GroupVersionKind from an ``apiVersion`` string and a kind."""
    if not api_version:
        return GroupVersionKind("", "", kind)
    parts = api_version.split("/")
    if len(parts) == 1:
        return GroupVersionKind("", parts[0], kind)
    if len(parts) == 2:
        return GroupVersionKind(parts[0], parts[1], kind)
    raise ValueError(f"unexpected GroupVersion string: {api_version!r}")


VIEW_GROUP_VERSION = GroupVersion("view.dcontroller.io", "v1alpha1")


@dataclass(frozen=True)
class ObjectKey:
    """Namespace and name identifying an object."""

    namespace: str = ""
    name: str = ""

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class Unstructured:
    """An object held as a plain nested dictionary."""

    object: dict[str, Any] = field(default_factory=dict)

    def _metadata(self, create: bool = False) -> dict[str, Any]:
        meta = self.object.get("metadata")
        if isinstance(meta, dict):
            return meta
        if create:
            meta = {}
            self.object["metadata"] = meta
            return meta
        return {}

    def _get_meta_str(self, key: str) -> str:
        value = self._metadata().get(key, "")
        return value if isinstance(value, str) else ""

    def _set_meta_str(self, key: str, value: str) -> None:
        if value:
            self._metadata(create=True)[key] = value
        else:
            self._metadata().pop(key, None)

    def _get_meta_map(self, key: str) -> dict[str, str]:
        value = self._metadata().get(key)
        if not isinstance(value, dict):
            return {}
        return {k: v for k, v in value.items() if isinstance(v, str)}

    def _set_meta_map(self, key: str, value: dict[str, str] | None) -> None:
        if value is None:
            self._metadata().pop(key, None)
        else:
            self._metadata(create=True)[key] = dict(value)

    @property
    def gvk(self) -> GroupVersionKind:
        api_version = self.object.get("apiVersion", "")
        kind = self.object.get("kind", "")
        try:
            return parse_gvk(api_version if isinstance(api_version, str) else "",
                             kind if isinstance(kind, str) else "")
        except ValueError:
            return GroupVersionKind()

    def set_gvk(self, gvk: GroupVersionKind) -> None:
        self.object["apiVersion"] = gvk.api_version()
        self.object["kind"] = gvk.kind

    @property
    def name(self) -> str:
        return self._get_meta_str("name")

    @name.setter
    def name(self, value: str) -> None:
        self._set_meta_str("name", value)

    @property
    def namespace(self) -> str:
        return self._get_meta_str("namespace")

    @namespace.setter
    def namespace(self, value: str) -> None:
        self._set_meta_str("namespace", value)

    @property
    def labels(self) -> dict[str, str]:
        return self._get_meta_map("labels")

    @labels.setter
    def labels(self, value: dict[str, str] | None) -> None:
        self._set_meta_map("labels", value)

    @property
    def annotations(self) -> dict[str, str]:
        return self._get_meta_map("annotations")

    @annotations.setter
    def annotations(self, value: dict[str, str] | None) -> None:
        self._set_meta_map("annotations", value)

    def set_name(self, namespace: str, name: str) -> None:
        self.namespace = namespace
        self.name = name

    def set_content(self, content: dict[str, Any]) -> None:
        """Replace the content, keeping the type and the metadata."""
        preserved = {k: self.object[k] for k in ("apiVersion", "kind", "metadata")
                     if k in self.object}
        new = copy.deepcopy(dict(content))
        new.update(preserved)
        self.object = new

    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)

    def deep_copy(self) -> Unstructured:
        return Unstructured(copy.deepcopy(self.object))

    def dump(self) -> str:
        """Return a compact JSON rendering of the object."""
        return json.dumps(self.object, sort_keys=True, separators=(",", ":"), default=str)


@dataclass
class UnstructuredList:
    """A list of objects of a single type."""

    gvk: GroupVersionKind = field(default_factory=GroupVersionKind)
    items: list[Unstructured] = field(default_factory=list)

    def append(self, obj: Unstructured) -> None:
        self.items.append(obj)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Unstructured]:
        return iter(self.items)


def new_gvk(view: str) -> GroupVersionKind:
    """Return the full type of a view."""
    return VIEW_GROUP_VERSION.with_kind(view)


def new_view_object(kind: str) -> Unstructured:
    obj = Unstructured()
    obj.set_gvk(new_gvk(kind))
    return obj


def new_view_object_list(kind: str) -> UnstructuredList:
    return UnstructuredList(gvk=new_gvk(kind))


def new_view_object_from_native(kind: str, obj: Unstructured) -> Unstructured:
    """Copy a native object into a view object of the given kind."""
    view = obj.deep_copy()
    view.set_gvk(new_gvk(kind))
    return view