from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date
from pathlib import Path
from typing import Any

from nidipo.application.dto.patient_dto import PatientRecordDto
from nidipo.domain.constants import AGE_FIELD, CENTER_FIELD, SERIAL_NUMBER_FIELD, SEX_FIELD
from nidipo.domain.form_schema import FormSection
from nidipo.domain.rules.form_rules import flatten_field_ids

logger = logging.getLogger(__name__)

CORE_HEADERS: tuple[str, ...] = ("Patient ID", "Age", "Sex", "Center", "Date Added")
LIST_SEPARATOR = "; "


def escape_csv_field(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        text = LIST_SEPARATOR.join(str(item) for item in value)
    else:
        text = str(value)
    if "," in text or '"' in text or "\n" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def build_export_columns(sections: Sequence[FormSection]) -> list[str]:
    return flatten_field_ids(sections)


def _bag_or(bag: Mapping[str, Any], key: str, fallback: object) -> object:
    value = bag.get(key)
    if value is None or value == "":
        return fallback
    return value


def _record_value(record: PatientRecordDto, column: str) -> object:
    value = record.form_data.get(column)
    if value is not None:
        return value
    # Core fields live on the record when the bag does not carry them.
    fallback = {
        SERIAL_NUMBER_FIELD: record.patient_id,
        AGE_FIELD: record.age,
        SEX_FIELD: record.sex,
        CENTER_FIELD: record.center_id,
    }
    return fallback.get(column)


def _record_row(record: PatientRecordDto, columns: Sequence[str]) -> list[str]:
    bag = record.form_data
    core = [
        _bag_or(bag, SERIAL_NUMBER_FIELD, record.patient_id),
        _bag_or(bag, AGE_FIELD, record.age),
        _bag_or(bag, SEX_FIELD, record.sex),
        record.center_name or "N/A",
        record.created_at.date().isoformat(),
    ]
    return [escape_csv_field(v) for v in core] + [escape_csv_field(_record_value(record, col)) for col in columns]


def render_patients_csv(records: Sequence[PatientRecordDto], columns: Sequence[str]) -> str:
    """Header plus one line per record; no trailing newline."""
    lines = [",".join(escape_csv_field(h) for h in (*CORE_HEADERS, *columns))]
    lines.extend(",".join(_record_row(record, columns)) for record in records)
    return "\n".join(lines)


def export_filename(prefix: str, today: date) -> str:
    return f"{prefix}_{today.isoformat()}.csv"


def export_patients_csv(
    records: Sequence[PatientRecordDto],
    sections: Sequence[FormSection],
    target_dir: str | Path,
    *,
    prefix: str,
    today: date,
) -> Path:
    out_dir = Path(target_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / export_filename(prefix, today)
    content = render_patients_csv(records, build_export_columns(sections))
    path.write_text(content, encoding="utf-8", newline="")
    logger.debug("Wrote %s bytes to %s", len(content), path)
    return path
