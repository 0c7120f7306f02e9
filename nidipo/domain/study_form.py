"""Intake form content for the diabetes outcomes study."""
from __future__ import annotations

from collections.abc import Mapping

from nidipo.domain.form_schema import FieldType, FormField, FormSection, FormValue


def _includes(field_id: str, option: str):
    def _predicate(values: Mapping[str, FormValue]) -> bool:
        current = values.get(field_id)
        return isinstance(current, list) and option in current

    return _predicate


def _equals(field_id: str, expected: str):
    def _predicate(values: Mapping[str, FormValue]) -> bool:
        return values.get(field_id) == expected

    return _predicate


STUDY_FORM: tuple[FormSection, ...] = (
    FormSection(
        title="Bio Data",
        fields=(
            FormField("serialNumber", "Serial Number", FieldType.TEXT, required=True,
                      help_text="Study serial number; used as the patient identifier."),
            FormField("age", "Age (years)", FieldType.NUMBER, required=True),
            FormField("sex", "Sex", FieldType.RADIO, options=("M", "F"), required=True),
            FormField("centerId", "Center", FieldType.TEXT,
                      help_text="Administrators only; other users are bound to their own center."),
        ),
    ),
    FormSection(
        title="Medical History",
        fields=(
            FormField("diabetesType", "Type of Diabetes", FieldType.RADIO,
                      options=("Type 1", "Type 2", "Gestational", "Other"), required=True),
            FormField("diabetesTypeOther", "Specify Other Type", FieldType.TEXT, required=True,
                      condition=_equals("diabetesType", "Other")),
            FormField("diabetesDuration", "Duration of Diabetes (years)", FieldType.NUMBER),
            FormField("comorbidities", "Comorbidities", FieldType.CHECKBOX,
                      options=("Hypertension", "Dyslipidaemia", "Chronic Kidney Disease", "Other")),
            FormField("comorbiditiesOther", "Other Comorbidities", FieldType.TEXT, required=True,
                      condition=_includes("comorbidities", "Other")),
            FormField("treatment", "Current Treatment", FieldType.CHECKBOX,
                      options=("Diet", "Oral agents", "Insulin"), required=True),
        ),
    ),
    FormSection(
        title="Glucose Monitoring",
        description="Fourteen days of capillary glucose readings, three per day.",
        fields=(
            FormField("glucoseMonitoring", "Glucose Readings", FieldType.MONITORING_TABLE, required=True),
        ),
    ),
    FormSection(
        title="Outcomes",
        fields=(
            FormField("outcome", "Outcome at Day 14", FieldType.RADIO,
                      options=("Discharged", "Still admitted", "Referred", "Died"), required=True),
            FormField("complications", "Complications", FieldType.CHECKBOX,
                      options=("Hypoglycaemia", "DKA", "HHS", "Infection")),
            FormField("notes", "Notes", FieldType.TEXTAREA),
        ),
    ),
)
