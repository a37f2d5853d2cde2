"""Typed diagnostic fields and the ordered collection that holds them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterator, List, Optional, Tuple, Union

if TYPE_CHECKING:
    from telemetry_core.backends import Backend

Primitive = Union[bool, int, float, str]
FieldValue = Union[Primitive, Tuple[Primitive, ...]]


class FieldType(str, Enum):
    """Groups fields by origin and lifetime."""

    NONE = "None"  # Cross-session identifiers
    SESSION = "Session"
    APP = "App"
    USER_SYSTEM = "UserSystem"
    USER_CONFIG = "UserConfig"


class FieldValueKind(str, Enum):
    """Value kinds a backend knows how to visit."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    SEQUENCE = "sequence"


def _primitive_kind(value: object) -> Optional[FieldValueKind]:
    # bool is a subclass of int, so it has to be checked first
    if isinstance(value, bool):
        return FieldValueKind.BOOLEAN
    if isinstance(value, int):
        return FieldValueKind.INTEGER
    if isinstance(value, float):
        return FieldValueKind.FLOAT
    if isinstance(value, str):
        return FieldValueKind.STRING
    return None


@dataclass(frozen=True)
class Field:
    """One named, typed diagnostic value."""

    category: FieldType
    name: str
    value: FieldValue
    kind: FieldValueKind = field(init=False)

    def __post_init__(self) -> None:
        kind = _primitive_kind(self.value)
        if kind is None:
            if not isinstance(self.value, (list, tuple)):
                raise TypeError(
                    f"Unsupported value type for field {self.name!r}: {type(self.value).__name__}"
                )
            items = tuple(self.value)
            for item in items:
                if _primitive_kind(item) is None:
                    raise TypeError(
                        f"Unsupported sequence item in field {self.name!r}: {type(item).__name__}"
                    )
            object.__setattr__(self, "value", items)
            kind = FieldValueKind.SEQUENCE
        object.__setattr__(self, "kind", kind)

    @property
    def key(self) -> str:
        """Qualified name, e.g. ``Session/Init_Time``."""
        return f"{self.category.value}/{self.name}"

    def accept(self, backend: Backend) -> None:
        """Hand this field to the backend handler for its value kind."""
        if self.kind is FieldValueKind.BOOLEAN:
            backend.visit_boolean(self)
        elif self.kind is FieldValueKind.INTEGER:
            backend.visit_integer(self)
        elif self.kind is FieldValueKind.FLOAT:
            backend.visit_float(self)
        elif self.kind is FieldValueKind.STRING:
            backend.visit_string(self)
        else:
            backend.visit_sequence(self)


class FieldCollection:
    """Insertion-ordered, append-only set of fields gathered during one session.

    Adding a field whose name is already present does not replace the earlier
    one; both are kept and both are visited.
    """

    def __init__(self) -> None:
        self._fields: List[Field] = []

    def add(self, category: FieldType, name: str, value: FieldValue) -> Field:
        """Append a new field and return it."""
        new_field = Field(category, name, value)
        self._fields.append(new_field)
        return new_field

    def accept(self, backend: Backend) -> None:
        """Deliver every field to the backend, in insertion order."""
        for item in self._fields:
            item.accept(backend)

    # Alias matching the visitor vocabulary
    visit = accept

    def get(self, category: FieldType, name: str) -> Optional[Field]:
        """Return the most recently added field with this category and name."""
        for item in reversed(self._fields):
            if item.category is category and item.name == name:
                return item
        return None

    def __iter__(self) -> Iterator[Field]:
        return iter(list(self._fields))

    def __len__(self) -> int:
        return len(self._fields)
