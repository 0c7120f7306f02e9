from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, cast

from nidipo.application.dto.auth_dto import SessionContext
from nidipo.application.dto.patient_dto import PatientRecordDto, PatientSubmitRequest
from nidipo.application.security import can_pick_center, can_view_all_centers
from nidipo.config import EXPORT_DIR, settings
from nidipo.domain.errors import AccessDeniedError
from nidipo.domain.form_schema import FormSection
from nidipo.domain.study_form import STUDY_FORM
from nidipo.infrastructure.db.repositories.audit_repo import AuditLogRepository
from nidipo.infrastructure.db.repositories.center_repo import CenterRepository
from nidipo.infrastructure.db.repositories.patient_repo import PatientRepository
from nidipo.infrastructure.db.session import session_scope
from nidipo.infrastructure.export.patients_csv import export_patients_csv

logger = logging.getLogger(__name__)


def _coerce_age(value: object) -> int:
    if isinstance(value, bool):
        raise ValueError("Age must be a whole number")
    if isinstance(value, int):
        age = value
    elif isinstance(value, float) and value.is_integer():
        age = int(value)
    else:
        text = str(value).strip()
        try:
            age = int(text)
        except ValueError:
            try:
                as_float = float(text)
            except ValueError as exc:
                raise ValueError("Age must be a whole number") from exc
            if not as_float.is_integer():
                raise ValueError("Age must be a whole number") from None
            age = int(as_float)
    if age < 0 or age > 130:
        raise ValueError("Age must be between 0 and 130")
    return age


class PatientService:
    def __init__(
        self,
        repo: PatientRepository | None = None,
        center_repo: CenterRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
        session_factory: Callable = session_scope,
        sections: Sequence[FormSection] = STUDY_FORM,
    ) -> None:
        self.repo = repo or PatientRepository()
        self.center_repo = center_repo or CenterRepository()
        self.audit_repo = audit_repo or AuditLogRepository()
        self.session_factory = session_factory
        self.sections = sections

    def create_patient(self, request: PatientSubmitRequest, actor: SessionContext) -> PatientRecordDto:
        age = _coerce_age(request.age)
        with self.session_factory() as session:
            center_id = self._resolve_center(session, request, actor)
            patient = self.repo.create(
                session,
                patient_id=request.patient_id,
                age=age,
                sex=request.sex,
                center_id=center_id,
                form_data=request.form_data,
            )
            self._audit(session, actor, cast(int, patient.id), "create_patient", request.patient_id)
            session.refresh(patient)
            return PatientRecordDto.model_validate(self.repo.to_dict(patient))

    def update_patient(
        self,
        patient_pk: int,
        request: PatientSubmitRequest,
        actor: SessionContext,
    ) -> PatientRecordDto:
        age = _coerce_age(request.age)
        with self.session_factory() as session:
            patient = self.repo.get_by_id(session, patient_pk)
            if patient is None:
                raise ValueError("Patient not found")
            self._require_visible(cast(int, patient.center_id), actor)
            center_id = self._resolve_center(session, request, actor)
            self.repo.update(
                session,
                patient,
                patient_id=request.patient_id,
                age=age,
                sex=request.sex,
                center_id=center_id,
                form_data=request.form_data,
            )
            self._audit(session, actor, patient_pk, "update_patient", request.patient_id)
            session.refresh(patient)
            return PatientRecordDto.model_validate(self.repo.to_dict(patient))

    def get_patient(self, patient_pk: int, actor: SessionContext) -> PatientRecordDto:
        with self.session_factory() as session:
            patient = self.repo.get_by_id(session, patient_pk)
            if patient is None:
                raise ValueError("Patient not found")
            self._require_visible(cast(int, patient.center_id), actor)
            return PatientRecordDto.model_validate(self.repo.to_dict(patient))

    def list_patients(self, actor: SessionContext, query: str | None = None) -> list[PatientRecordDto]:
        center_filter = None if can_view_all_centers(actor.role) else actor.center_id
        if center_filter is None and not can_view_all_centers(actor.role):
            return []
        with self.session_factory() as session:
            return [
                PatientRecordDto.model_validate(self.repo.to_dict(item))
                for item in self.repo.list_patients(session, center_id=center_filter, query=query)
            ]

    def export_csv(
        self,
        actor: SessionContext,
        target_dir: str | Path | None = None,
        *,
        query: str | None = None,
        today: date | None = None,
    ) -> Path:
        records = self.list_patients(actor, query=query)
        path = export_patients_csv(
            records,
            self.sections,
            target_dir or EXPORT_DIR,
            prefix=settings.export_prefix,
            today=today or datetime.now(UTC).date(),
        )
        logger.info("Exported %s patients to %s", len(records), path)
        return path

    def _resolve_center(self, session, request: PatientSubmitRequest, actor: SessionContext) -> int:
        center_id = request.center_id if can_pick_center(actor.role) and request.center_id else actor.center_id
        if center_id is None:
            raise ValueError("A center is required for patient records")
        if self.center_repo.get_by_id(session, center_id) is None:
            raise ValueError("Center not found")
        return center_id

    def _require_visible(self, center_id: int, actor: SessionContext) -> None:
        if not can_view_all_centers(actor.role) and center_id != actor.center_id:
            raise AccessDeniedError("This patient belongs to another center")

    def _audit(self, session, actor: SessionContext, patient_pk: int, action: str, patient_id: str) -> None:
        payload: dict[str, Any] = {"patient_id": patient_id}
        self.audit_repo.add_event(
            session,
            user_id=actor.user_id,
            entity_type="patient",
            entity_id=str(patient_pk),
            action=action,
            payload_json=json.dumps(payload, ensure_ascii=False),
        )
