from __future__ import annotations

from collections.abc import Mapping, Sequence

from nidipo.domain.form_schema import FieldType, FormSection, FormValue, is_blank
from nidipo.domain.monitoring_grid import GLUCOSE_READING_COUNT, count_filled, glucose_keys


def validate_form(sections: Sequence[FormSection], values: Mapping[str, FormValue]) -> list[str]:
    missing: list[str] = []
    for section in sections:
        for item in section.fields:
            if not item.is_visible(values):
                continue
            if item.type == FieldType.MONITORING_TABLE:
                if item.required and count_filled(values) < GLUCOSE_READING_COUNT:
                    missing.append(f"{section.title}: {item.label} - All readings required.")
            elif item.required and is_blank(values.get(item.id)):
                missing.append(f"{section.title}: {item.label}")
    return missing


def flatten_field_ids(sections: Sequence[FormSection]) -> list[str]:
    ids: list[str] = []
    for section in sections:
        for item in section.fields:
            if item.type == FieldType.MONITORING_TABLE:
                ids.extend(glucose_keys())
            else:
                ids.append(item.id)
    return ids
