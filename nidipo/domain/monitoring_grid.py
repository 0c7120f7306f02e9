"""Glucose monitoring grid: 14 days x 3 readings, stored as flat bag keys."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

GLUCOSE_DAYS: Final[tuple[int, ...]] = tuple(range(1, 15))
GLUCOSE_TIMES: Final[tuple[str, ...]] = ("morning", "afternoon", "night")
GLUCOSE_READING_COUNT: Final[int] = len(GLUCOSE_DAYS) * len(GLUCOSE_TIMES)


@dataclass(frozen=True, slots=True)
class GridRow:
    day: int
    label: str
    readings: dict[str, str]


def glucose_key(day: int, time: str) -> str:
    if day not in GLUCOSE_DAYS:
        raise ValueError(f"Day must be between 1 and {GLUCOSE_DAYS[-1]}: {day}")
    if time not in GLUCOSE_TIMES:
        raise ValueError(f"Unknown reading time: {time}")
    return f"glucose_day{day}_{time}"


def glucose_keys() -> list[str]:
    return [glucose_key(day, time) for day in GLUCOSE_DAYS for time in GLUCOSE_TIMES]


def _reading_text(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def count_filled(values: Mapping[str, object]) -> int:
    return sum(1 for key in glucose_keys() if _reading_text(values.get(key)).strip())


def is_complete(values: Mapping[str, object]) -> bool:
    return count_filled(values) == GLUCOSE_READING_COUNT


def grid_rows(values: Mapping[str, object]) -> list[GridRow]:
    return [
        GridRow(
            day=day,
            label=f"Day {day}",
            readings={time: _reading_text(values.get(glucose_key(day, time))) for time in GLUCOSE_TIMES},
        )
        for day in GLUCOSE_DAYS
    ]
