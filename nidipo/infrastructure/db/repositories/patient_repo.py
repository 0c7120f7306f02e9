from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from nidipo.infrastructure.db.models_sqlalchemy import Patient


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _to_json(value: dict[str, Any]) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _from_json(value: object) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    try:
        parsed = json.loads(str(value))
    except Exception:  # noqa: BLE001
        return {}
    return parsed if isinstance(parsed, dict) else {}


class PatientRepository:
    def get_by_id(self, session: Session, patient_pk: int) -> Patient | None:
        stmt = select(Patient).options(joinedload(Patient.center)).where(Patient.id == patient_pk)
        return session.execute(stmt).scalar_one_or_none()

    def list_patients(
        self,
        session: Session,
        *,
        center_id: int | None = None,
        query: str | None = None,
    ) -> list[Patient]:
        stmt = select(Patient).options(joinedload(Patient.center))
        if center_id is not None:
            stmt = stmt.where(Patient.center_id == center_id)
        clean = (query or "").strip()
        if clean:
            stmt = stmt.where(func.lower(Patient.patient_id).contains(clean.lower()))
        stmt = stmt.order_by(Patient.created_at.desc(), Patient.id.desc())
        return list(session.execute(stmt).scalars())

    def count_in_center(self, session: Session, center_id: int) -> int:
        stmt = select(func.count(Patient.id)).where(Patient.center_id == center_id)
        return session.execute(stmt).scalar() or 0

    def create(
        self,
        session: Session,
        *,
        patient_id: str,
        age: int,
        sex: str,
        center_id: int,
        form_data: dict[str, Any],
    ) -> Patient:
        now = _utc_now()
        patient = Patient(
            patient_id=patient_id,
            age=age,
            sex=sex,
            center_id=center_id,
            created_at=now,
            updated_at=now,
            form_data_json=_to_json(form_data),
        )
        session.add(patient)
        session.flush()
        return patient

    def update(
        self,
        session: Session,
        patient: Patient,
        *,
        patient_id: str,
        age: int,
        sex: str,
        center_id: int,
        form_data: dict[str, Any],
    ) -> Patient:
        patient.patient_id = patient_id  # type: ignore[assignment]
        patient.age = age  # type: ignore[assignment]
        patient.sex = sex  # type: ignore[assignment]
        patient.center_id = center_id  # type: ignore[assignment]
        patient.form_data_json = _to_json(form_data)  # type: ignore[assignment]
        patient.updated_at = _utc_now()  # type: ignore[assignment]
        session.flush()
        return patient

    def to_dict(self, patient: Patient) -> dict[str, Any]:
        center = patient.center
        return {
            "id": patient.id,
            "patient_id": patient.patient_id,
            "age": patient.age,
            "sex": patient.sex,
            "center_id": patient.center_id,
            "center_name": center.name if center is not None else None,
            "created_at": patient.created_at,
            "updated_at": patient.updated_at,
            "form_data": _from_json(patient.form_data_json),
        }
