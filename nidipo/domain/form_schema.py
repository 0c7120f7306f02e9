from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeAlias

FormValue: TypeAlias = str | int | float | list[str]
FormBag: TypeAlias = dict[str, FormValue]
VisibilityPredicate: TypeAlias = Callable[[Mapping[str, FormValue]], bool]


class FieldType(StrEnum):
    TEXT = "text"
    NUMBER = "number"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    MONITORING_TABLE = "monitoring_table"
    TEXTAREA = "textarea"


@dataclass(frozen=True, slots=True)
class FormField:
    id: str
    label: str
    type: FieldType
    options: tuple[str, ...] = ()
    required: bool = False
    help_text: str | None = None
    condition: VisibilityPredicate | None = None

    def is_visible(self, values: Mapping[str, FormValue]) -> bool:
        if self.condition is None:
            return True
        return bool(self.condition(values))


@dataclass(frozen=True, slots=True)
class FormSection:
    title: str
    fields: tuple[FormField, ...] = field(default_factory=tuple)
    description: str | None = None


def coerce_form_value(value: object) -> FormValue:
    """Normalize an incoming value to one of the bag's tagged shapes."""
    if isinstance(value, bool):
        raise TypeError("Boolean values are not valid form values")
    if isinstance(value, (str, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        items = list(value)
        if not all(isinstance(item, str) for item in items):
            raise TypeError("List form values must contain strings only")
        return items
    raise TypeError(f"Unsupported form value type: {type(value).__name__}")


def is_blank(value: FormValue | None) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, list):
        return len(value) == 0
    return False

