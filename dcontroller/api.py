"""Operator and controller specifications of the dcontroller.io API group."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import yaml

from .objects import GroupVersion

GROUP_VERSION = GroupVersion("dcontroller.io", "v1alpha1")


class SpecError(ValueError):
    """Raised when a specification cannot be decoded."""


class TargetType(str, enum.Enum):
    """How a controller writes into its target."""

    UPDATER = "Updater"
    PATCHER = "Patcher"


@dataclass
class Resource:
    """A resource given by its kind and optional group and version."""

    kind: str
    group: str | None = None
    version: str | None = None


@dataclass
class Source(Resource):
    """A watch source that feeds deltas into a controller."""

    namespace: str | None = None
    label_selector: dict[str, Any] | None = None
    predicate: Any = None


@dataclass
class Target(Resource):
    """The resource a controller writes its output into."""

    type: TargetType | None = None


@dataclass
class Pipeline:
    """An optional join followed by an optional aggregation."""

    join: Any = None
    aggregation: list[Any] | None = None


@dataclass
class Controller:
    """A named set of sources, a processing pipeline and a target."""

    name: str
    sources: list[Source] = field(default_factory=list)
    pipeline: Pipeline = field(default_factory=Pipeline)
    target: Target | None = None


@dataclass
class OperatorSpec:
    controllers: list[Controller] = field(default_factory=list)


class ConditionStatus(str, enum.Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ControllerConditionType(str, enum.Enum):
    READY = "Ready"


class ControllerConditionReason(str, enum.Enum):
    READY = "Ready"
    RECONCILIATION_FAILED = "ReconciliationFailed"
    NOT_READY = "NotReady"


@dataclass
class Condition:
    type: str
    status: ConditionStatus
    reason: str
    message: str
    observed_generation: int = 0
    last_transition_time: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ControllerStatus:
    name: str
    conditions: list[Condition] = field(default_factory=list)
    last_errors: list[str] = field(default_factory=list)


@dataclass
class OperatorStatus:
    controllers: list[ControllerStatus] = field(default_factory=list)


@dataclass
class Operator:
    """A set of related controllers sharing a single view of resources."""

    name: str
    spec: OperatorSpec = field(default_factory=OperatorSpec)
    status: OperatorStatus = field(default_factory=OperatorStatus)
    metadata: dict[str, Any] = field(default_factory=dict)


def _mapping(value: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise SpecError(f"{where}: expected a mapping, got {type(value).__name__}")
    return value


def _list(value: Any, where: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SpecError(f"{where}: expected a list, got {type(value).__name__}")
    return value


def _str(data: Mapping[str, Any], key: str, where: str, default: str = "") -> str:
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise SpecError(f"{where}.{key}: expected a string")
    return value


def _opt_str(data: Mapping[str, Any], key: str, where: str) -> str | None:
    if data.get(key) is None:
        return None
    return _str(data, key, where)


def _parse_resource_fields(data: Mapping[str, Any], where: str) -> dict[str, Any]:
    return {
        "kind": _str(data, "kind", where),
        "group": _opt_str(data, "apiGroup", where),
        "version": _opt_str(data, "version", where),
    }


def _parse_source(value: Any, where: str) -> Source:
    data = _mapping(value, where)
    selector = data.get("labelSelector")
    if selector is not None:
        selector = dict(_mapping(selector, f"{where}.labelSelector"))
    return Source(
        **_parse_resource_fields(data, where),
        namespace=_opt_str(data, "namespace", where),
        label_selector=selector,
        predicate=data.get("predicate"),
    )


def _parse_target(value: Any, where: str) -> Target:
    data = _mapping(value, where)
    type_name = _str(data, "type", where)
    target_type = None
    if type_name:
        try:
            target_type = TargetType(type_name)
        except ValueError:
            raise SpecError(f"{where}.type: unknown target type {type_name!r}") from None
    return Target(**_parse_resource_fields(data, where), type=target_type)


def _parse_pipeline(value: Any, where: str) -> Pipeline:
    if value is None:
        return Pipeline()
    data = _mapping(value, where)
    aggregation = data.get("@aggregate")
    if aggregation is not None and not isinstance(aggregation, list):
        raise SpecError(f"{where}.@aggregate: expected a list of expressions")
    return Pipeline(join=data.get("@join"), aggregation=aggregation)


def parse_controller(data: Any) -> Controller:
    """Decode a controller specification from plain data."""
    where = "controller"
    data = _mapping(data, where)
    target = data.get("target")
    return Controller(
        name=_str(data, "name", where),
        sources=[_parse_source(s, f"{where}.sources[{i}]")
                 for i, s in enumerate(_list(data.get("sources"), f"{where}.sources"))],
        pipeline=_parse_pipeline(data.get("pipeline"), f"{where}.pipeline"),
        target=None if target is None else _parse_target(target, f"{where}.target"),
    )


def parse_controller_yaml(text: str) -> Controller:
    """Decode a controller specification from YAML text."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SpecError(f"invalid YAML: {exc}") from exc
    return parse_controller(data)


def _parse_time(value: Any, where: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise SpecError(f"{where}: expected a timestamp")
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise SpecError(f"{where}: invalid timestamp {value!r}") from None


def _parse_condition(value: Any, where: str) -> Condition:
    data = _mapping(value, where)
    try:
        status = ConditionStatus(_str(data, "status", where))
    except ValueError:
        raise SpecError(f"{where}.status: invalid condition status") from None
    generation = data.get("observedGeneration", 0)
    if not isinstance(generation, int):
        raise SpecError(f"{where}.observedGeneration: expected an integer")
    condition = Condition(
        type=_str(data, "type", where),
        status=status,
        reason=_str(data, "reason", where),
        message=_str(data, "message", where),
        observed_generation=generation,
    )
    if data.get("lastTransitionTime") is not None:
        condition.last_transition_time = _parse_time(
            data["lastTransitionTime"], f"{where}.lastTransitionTime")
    return condition


def _parse_controller_status(value: Any, where: str) -> ControllerStatus:
    data = _mapping(value, where)
    errors = _list(data.get("lastErrors"), f"{where}.lastErrors")
    if not all(isinstance(e, str) for e in errors):
        raise SpecError(f"{where}.lastErrors: expected strings")
    return ControllerStatus(
        name=_str(data, "name", where),
        conditions=[_parse_condition(c, f"{where}.conditions[{i}]")
                    for i, c in enumerate(_list(data.get("conditions"), f"{where}.conditions"))],
        last_errors=list(errors),
    )


def parse_operator(data: Any) -> Operator:
    """Decode an Operator resource from plain data."""
    data = _mapping(data, "operator")
    metadata = dict(_mapping(data.get("metadata") or {}, "operator.metadata"))
    spec = _mapping(data.get("spec") or {}, "operator.spec")
    status = _mapping(data.get("status") or {}, "operator.status")
    name = metadata.get("name", "")
    if not isinstance(name, str):
        raise SpecError("operator.metadata.name: expected a string")
    controllers = [
        parse_controller(c)
        for c in _list(spec.get("controllers"), "operator.spec.controllers")
    ]
    statuses = [
        _parse_controller_status(s, f"operator.status.controllers[{i}]")
        for i, s in enumerate(_list(status.get("controllers"), "operator.status.controllers"))
    ]
    return Operator(name=name, spec=OperatorSpec(controllers),
                    status=OperatorStatus(statuses), metadata=metadata)


def _resource_to_dict(resource: Resource) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if resource.group is not None:
        out["apiGroup"] = resource.group
    if resource.version is not None:
        out["version"] = resource.version
    out["kind"] = resource.kind
    return out


def controller_to_dict(controller: Controller) -> dict[str, Any]:
    """Encode a controller specification as plain data."""
    sources = []
    for source in controller.sources:
        item = _resource_to_dict(source)
        if source.namespace is not None:
            item["namespace"] = source.namespace
        if source.label_selector is not None:
            item["labelSelector"] = dict(source.label_selector)
        if source.predicate is not None:
            item["predicate"] = source.predicate
        sources.append(item)

    pipeline: dict[str, Any] = {}
    if controller.pipeline.join is not None:
        pipeline["@join"] = controller.pipeline.join
    if controller.pipeline.aggregation is not None:
        pipeline["@aggregate"] = list(controller.pipeline.aggregation)

    out: dict[str, Any] = {"name": controller.name, "sources": sources, "pipeline": pipeline}
    if controller.target is not None:
        target = _resource_to_dict(controller.target)
        if controller.target.type is not None:
            target["type"] = controller.target.type.value
        out["target"] = target
    return out