from __future__ import annotations

import pytest

from nidipo.domain.monitoring_grid import (
    GLUCOSE_READING_COUNT,
    count_filled,
    glucose_key,
    glucose_keys,
    grid_rows,
    is_complete,
)


def test_keys_are_generated_in_day_then_time_order() -> None:
    keys = glucose_keys()

    assert len(keys) == GLUCOSE_READING_COUNT == 42
    assert keys[:4] == [
        "glucose_day1_morning",
        "glucose_day1_afternoon",
        "glucose_day1_night",
        "glucose_day2_morning",
    ]
    assert keys[-1] == "glucose_day14_night"
    assert len(set(keys)) == 42


@pytest.mark.parametrize(("day", "time"), [(0, "morning"), (15, "night"), (3, "evening")])
def test_glucose_key_rejects_out_of_range(day: int, time: str) -> None:
    with pytest.raises(ValueError):
        glucose_key(day, time)


def test_count_filled_ignores_whitespace_only_cells() -> None:
    values = {
        glucose_key(1, "morning"): "110",
        glucose_key(1, "afternoon"): "   ",
        glucose_key(2, "night"): 98,
        "notes": "not a reading",
    }

    assert count_filled(values) == 2
    assert is_complete(values) is False


def test_is_complete_requires_every_cell() -> None:
    values = {key: "100" for key in glucose_keys()}
    assert is_complete(values) is True

    values[glucose_key(7, "afternoon")] = ""
    assert is_complete(values) is False


def test_grid_rows_expose_readings_per_day() -> None:
    rows = grid_rows({glucose_key(2, "night"): "140"})

    assert len(rows) == 14
    assert rows[0].label == "Day 1"
    assert rows[1].readings == {"morning": "", "afternoon": "", "night": "140"}
