from __future__ import annotations

import pytest

from nidipo.domain.form_schema import FieldType, FormField, FormSection, coerce_form_value, is_blank
from nidipo.domain.monitoring_grid import glucose_keys
from nidipo.domain.rules.form_rules import flatten_field_ids, validate_form
from nidipo.domain.study_form import STUDY_FORM

BIO = FormSection(
    title="Bio Data",
    fields=(
        FormField("serialNumber", "Serial Number", FieldType.TEXT, required=True),
        FormField("age", "Age", FieldType.NUMBER, required=True),
        FormField("sex", "Sex", FieldType.RADIO, options=("M", "F"), required=True),
    ),
)
GRID = FormSection(
    title="Glucose Monitoring",
    fields=(FormField("glucoseMonitoring", "Glucose Readings", FieldType.MONITORING_TABLE, required=True),),
)


def _full_grid() -> dict[str, str]:
    return {key: "120" for key in glucose_keys()}


def test_validate_collects_every_failure_in_field_order() -> None:
    failures = validate_form([BIO, GRID], {"age": 40})

    assert failures == [
        "Bio Data: Serial Number",
        "Bio Data: Sex",
        "Glucose Monitoring: Glucose Readings - All readings required.",
    ]


def test_empty_string_and_empty_list_count_as_missing() -> None:
    section = FormSection(
        title="History",
        fields=(
            FormField("treatment", "Treatment", FieldType.CHECKBOX, options=("Diet",), required=True),
            FormField("notes", "Notes", FieldType.TEXT, required=True),
        ),
    )

    assert validate_form([section], {"treatment": [], "notes": ""}) == ["History: Treatment", "History: Notes"]
    assert validate_form([section], {"treatment": ["Diet"], "notes": "ok"}) == []


def test_zero_is_a_present_value() -> None:
    assert validate_form([BIO], {"serialNumber": "S-1", "age": 0, "sex": "M"}) == []


def test_hidden_required_fields_are_skipped() -> None:
    section = FormSection(
        title="Medical History",
        fields=(
            FormField("diabetesType", "Type", FieldType.RADIO, options=("Type 1", "Other"), required=True),
            FormField(
                "diabetesTypeOther",
                "Specify Other Type",
                FieldType.TEXT,
                required=True,
                condition=lambda values: values.get("diabetesType") == "Other",
            ),
        ),
    )

    assert validate_form([section], {"diabetesType": "Type 1"}) == []
    assert validate_form([section], {"diabetesType": "Other"}) == ["Medical History: Specify Other Type"]


def test_grid_with_41_cells_fails_and_42_passes() -> None:
    values: dict = {"serialNumber": "S-9", "age": 51, "sex": "F", **_full_grid()}
    last_key = glucose_keys()[-1]
    values[last_key] = ""

    assert validate_form([BIO, GRID], values) == [
        "Glucose Monitoring: Glucose Readings - All readings required."
    ]

    values[last_key] = "101"
    assert validate_form([BIO, GRID], values) == []


def test_optional_grid_is_not_enforced() -> None:
    optional = FormSection(
        title="Glucose Monitoring",
        fields=(FormField("glucoseMonitoring", "Glucose Readings", FieldType.MONITORING_TABLE),),
    )
    assert validate_form([optional], {}) == []


def test_flatten_field_ids_expands_grid_in_place() -> None:
    ids = flatten_field_ids([BIO, GRID])

    assert ids[:3] == ["serialNumber", "age", "sex"]
    assert ids[3:] == glucose_keys()


def test_study_form_lists_core_fields_first() -> None:
    ids = flatten_field_ids(STUDY_FORM)
    assert ids[:4] == ["serialNumber", "age", "sex", "centerId"]
    assert "glucoseMonitoring" not in ids
    assert "glucose_day14_night" in ids


def test_coerce_form_value_rejects_unsupported_shapes() -> None:
    original = ["A"]
    copied = coerce_form_value(original)
    assert copied == ["A"] and copied is not original

    with pytest.raises(TypeError):
        coerce_form_value(True)
    with pytest.raises(TypeError):
        coerce_form_value({"nested": 1})
    with pytest.raises(TypeError):
        coerce_form_value(["ok", 3])


def test_is_blank() -> None:
    assert is_blank(None) and is_blank("") and is_blank([])
    assert not is_blank(0) and not is_blank(" ") and not is_blank(["x"])
