"""Changes on objects, as produced by caches and processing pipelines."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .objects import Unstructured


class DeltaType(str, enum.Enum):
    """The kind of change a delta records."""

    ADDED = "Added"
    DELETED = "Deleted"
    UPDATED = "Updated"
    REPLACED = "Replaced"
    SYNC = "Sync"
    # Either an update/replace or an add.
    UPSERTED = "Upserted"


@dataclass(frozen=True)
class Delta:
    """A change (addition, deletion, etc.) on an object.

    By convention the object is None if no change occurs.
    """

    object: Unstructured | None = None
    type: DeltaType | None = None

    def is_unchanged(self) -> bool:
        return self.object is None

    def __str__(self) -> str:
        key = "<empty>" if self.object is None else str(self.object.key())
        type_name = self.type.value if self.type is not None else ""
        return f"Delta(Type:{type_name},Object:{key})"


NIL_DELTA = Delta()