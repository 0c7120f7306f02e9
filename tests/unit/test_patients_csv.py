from __future__ import annotations

from datetime import UTC, date, datetime
from pathlib import Path

from nidipo.application.dto.patient_dto import PatientRecordDto
from nidipo.domain.form_schema import FieldType, FormField, FormSection
from nidipo.domain.monitoring_grid import glucose_key
from nidipo.infrastructure.export.patients_csv import (
    build_export_columns,
    escape_csv_field,
    export_filename,
    export_patients_csv,
    render_patients_csv,
)

SECTIONS = (
    FormSection(
        title="Bio Data",
        fields=(
            FormField("serialNumber", "Serial Number", FieldType.TEXT, required=True),
            FormField("comorbidities", "Comorbidities", FieldType.CHECKBOX, options=("A", "B")),
        ),
    ),
    FormSection(title="Outcomes", fields=(FormField("notes", "Notes", FieldType.TEXTAREA),)),
)


def _record(**form_data) -> PatientRecordDto:
    ts = datetime(2026, 2, 14, 8, 0, tzinfo=UTC)
    return PatientRecordDto(
        id=1,
        patient_id="P-001",
        age=54,
        sex="F",
        center_id=2,
        center_name="Lagos Teaching Hospital",
        created_at=ts,
        updated_at=ts,
        form_data=form_data,
    )


def test_escape_csv_field() -> None:
    assert escape_csv_field("plain") == "plain"
    assert escape_csv_field('hello, "world"') == '"hello, ""world"""'
    assert escape_csv_field("two\nlines") == '"two\nlines"'
    assert escape_csv_field(None) == ""
    assert escape_csv_field(["x", "y"]) == "x; y"
    assert escape_csv_field(12.5) == "12.5"


def test_render_quotes_notes_with_comma_and_quotes() -> None:
    columns = build_export_columns(SECTIONS)
    content = render_patients_csv([_record(serialNumber="P-001", notes='hello, "world"')], columns)

    assert '"hello, ""world"""' in content


def test_render_header_lists_and_missing_values() -> None:
    columns = build_export_columns(SECTIONS)
    content = render_patients_csv([_record(comorbidities=["A", "B"])], columns)

    header, row = content.split("\n")
    assert header == "Patient ID,Age,Sex,Center,Date Added,serialNumber,comorbidities,notes"
    assert row == "P-001,54,F,Lagos Teaching Hospital,2026-02-14,P-001,A; B,"
    assert not content.endswith("\n")


def test_render_uses_na_for_missing_center_name() -> None:
    record = _record().model_copy(update={"center_name": None})
    content = render_patients_csv([record], [])
    assert content.split("\n")[1] == "P-001,54,F,N/A,2026-02-14"


def test_dynamic_core_columns_fall_back_to_record() -> None:
    bio = FormSection(
        title="Bio Data",
        fields=(
            FormField("serialNumber", "Serial Number", FieldType.TEXT, required=True),
            FormField("age", "Age (years)", FieldType.NUMBER, required=True),
            FormField("sex", "Sex", FieldType.RADIO, options=("M", "F"), required=True),
            FormField("centerId", "Center", FieldType.TEXT),
        ),
    )
    record = _record(sex="M").model_copy(update={"patient_id": "NID-1", "age": 40, "center_id": 7})

    header, row = render_patients_csv([record], build_export_columns([bio])).split("\n")

    assert header.split(",")[5:] == ["serialNumber", "age", "sex", "centerId"]
    assert row.split(",")[5:] == ["NID-1", "40", "M", "7"]


def test_render_is_deterministic() -> None:
    columns = build_export_columns(SECTIONS)
    records = [_record(notes="a"), _record(notes='b, "c"')]

    assert render_patients_csv(records, columns).encode() == render_patients_csv(records, columns).encode()


def test_grid_columns_follow_core_fields() -> None:
    grid = FormSection(
        title="Glucose Monitoring",
        fields=(FormField("glucoseMonitoring", "Glucose Readings", FieldType.MONITORING_TABLE, required=True),),
    )
    columns = build_export_columns([grid])
    content = render_patients_csv([_record(**{glucose_key(1, "morning"): "110"})], columns)

    header, row = content.split("\n")
    assert header.split(",")[5] == "glucose_day1_morning"
    assert len(header.split(",")) == 5 + 42
    assert row.split(",")[5] == "110"


def test_export_writes_dated_file(tmp_path: Path) -> None:
    path = export_patients_csv(
        [_record(notes="x")],
        SECTIONS,
        tmp_path / "exports",
        prefix="patients_export",
        today=date(2026, 2, 15),
    )

    assert path.name == export_filename("patients_export", date(2026, 2, 15)) == "patients_export_2026-02-15.csv"
    assert path.read_text(encoding="utf-8").startswith("Patient ID,Age,Sex,Center,Date Added")
