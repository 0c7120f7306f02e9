"""Multi-step clinical intake form: bag, steps, crash backup, draft and submit."""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, Protocol

from nidipo.application.dto.auth_dto import SessionContext
from nidipo.application.dto.patient_dto import DraftDto, DraftSaveRequest, PatientRecordDto, PatientSubmitRequest
from nidipo.application.security import can_pick_center
from nidipo.config import settings
from nidipo.domain.constants import AGE_FIELD, CENTER_FIELD, SERIAL_NUMBER_FIELD, SEX_FIELD
from nidipo.domain.errors import FormValidationError, PersistenceError
from nidipo.domain.form_schema import FormBag, FormSection, FormValue, coerce_form_value, is_blank
from nidipo.domain.models import LocalSnapshot
from nidipo.domain.monitoring_grid import GridRow, count_filled, glucose_key, grid_rows
from nidipo.domain.rules.form_rules import validate_form
from nidipo.infrastructure.storage.local_snapshot import LocalSnapshotStore

logger = logging.getLogger(__name__)


class DraftGateway(Protocol):
    def save_draft(self, request: DraftSaveRequest, actor: SessionContext) -> DraftDto: ...

    def delete_draft(self, draft_id: int, actor: SessionContext) -> None: ...


class PatientGateway(Protocol):
    def create_patient(self, request: PatientSubmitRequest, actor: SessionContext) -> PatientRecordDto: ...

    def update_patient(
        self, patient_pk: int, request: PatientSubmitRequest, actor: SessionContext
    ) -> PatientRecordDto: ...


class FormEngineState(StrEnum):
    AWAITING_RESTORE_DECISION = "awaiting_restore_decision"
    READY = "ready"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _copy_bag(values: dict[str, Any]) -> FormBag:
    bag: FormBag = {}
    for key, value in values.items():
        try:
            bag[key] = coerce_form_value(value)
        except TypeError:
            logger.debug("Dropping unsupported value for %s", key)
    return bag


class ClinicalFormEngine:
    def __init__(
        self,
        sections: Sequence[FormSection],
        actor: SessionContext,
        snapshot_store: LocalSnapshotStore,
        draft_service: DraftGateway,
        patient_service: PatientGateway,
        *,
        patient: PatientRecordDto | None = None,
        draft: DraftDto | None = None,
        clock: Callable[[], datetime] = _utc_now,
        backup_max_age: timedelta = timedelta(hours=settings.backup_max_age_hours),
    ) -> None:
        if not sections:
            raise ValueError("Form needs at least one section")
        self.sections = tuple(sections)
        self.actor = actor
        self.snapshot_store = snapshot_store
        self.draft_service = draft_service
        self.patient_service = patient_service
        self.clock = clock
        self.backup_max_age = backup_max_age

        self._patient = patient
        self._step_index = 0
        self._is_submitting = False
        self._is_saving_draft = False
        self._last_saved_at: datetime | None = None
        self._pending_backup: LocalSnapshot | None = None
        self._state = FormEngineState.READY

        if patient is not None:
            self._values = _copy_bag(patient.form_data)
            self._draft_id: int | None = None
        elif draft is not None:
            self._values = _copy_bag(draft.form_data)
            self._draft_id = draft.id
        else:
            self._values = {}
            self._draft_id = None
            self._offer_backup()

    # -- state ------------------------------------------------------------

    @property
    def state(self) -> FormEngineState:
        return self._state

    @property
    def pending_backup(self) -> LocalSnapshot | None:
        return self._pending_backup

    @property
    def values(self) -> FormBag:
        return {k: list(v) if isinstance(v, list) else v for k, v in self._values.items()}

    @property
    def step_index(self) -> int:
        return self._step_index

    @property
    def step_count(self) -> int:
        return len(self.sections)

    @property
    def current_section(self) -> FormSection:
        return self.sections[self._step_index]

    @property
    def is_first_step(self) -> bool:
        return self._step_index == 0

    @property
    def is_last_step(self) -> bool:
        return self._step_index == len(self.sections) - 1

    @property
    def is_editing(self) -> bool:
        return self._patient is not None

    @property
    def is_submitting(self) -> bool:
        return self._is_submitting

    @property
    def is_saving_draft(self) -> bool:
        return self._is_saving_draft

    @property
    def draft_id(self) -> int | None:
        return self._draft_id

    @property
    def last_saved_at(self) -> datetime | None:
        return self._last_saved_at

    def get_value(self, field_id: str) -> FormValue | None:
        value = self._values.get(field_id)
        return list(value) if isinstance(value, list) else value

    # -- restore decision -------------------------------------------------

    def _offer_backup(self) -> None:
        try:
            snapshot = self.snapshot_store.get()
        except Exception:  # noqa: BLE001
            logger.exception("Could not read local form backup")
            return
        if snapshot is None:
            return
        if snapshot.user_id != self.actor.user_id:
            logger.debug("Ignoring form backup owned by another user")
            return
        age = snapshot.age_at(self.clock())
        if age < 0 or age >= self.backup_max_age.total_seconds():
            logger.debug("Ignoring stale form backup (%.0fs old)", age)
            return
        self._pending_backup = snapshot
        self._state = FormEngineState.AWAITING_RESTORE_DECISION

    def restore_backup(self) -> None:
        snapshot = self._require_pending()
        self._values = _copy_bag(snapshot.form_data)
        self._pending_backup = None
        self._state = FormEngineState.READY

    def discard_backup(self) -> None:
        self._require_pending()
        self.snapshot_store.clear()
        self._pending_backup = None
        self._state = FormEngineState.READY

    def _require_pending(self) -> LocalSnapshot:
        if self._state != FormEngineState.AWAITING_RESTORE_DECISION or self._pending_backup is None:
            raise ValueError("No form backup is waiting for a decision")
        return self._pending_backup

    def _require_ready(self) -> None:
        if self._state != FormEngineState.READY:
            raise ValueError("Restore or discard the saved form backup first")

    # -- editing ----------------------------------------------------------

    def set_value(self, field_id: str, value: object) -> None:
        self._require_ready()
        self._values[field_id] = coerce_form_value(value)
        self._write_backup()

    def toggle_option(self, field_id: str, option: str, checked: bool) -> None:
        current = self._values.get(field_id)
        selected = list(current) if isinstance(current, list) else []
        if checked and option not in selected:
            selected.append(option)
        elif not checked:
            selected = [item for item in selected if item != option]
        self.set_value(field_id, selected)

    def set_glucose_reading(self, day: int, time: str, value: str) -> None:
        self.set_value(glucose_key(day, time), value)

    def monitoring_rows(self) -> list[GridRow]:
        return grid_rows(self._values)

    def monitoring_filled(self) -> int:
        return count_filled(self._values)

    def _write_backup(self) -> None:
        snapshot = LocalSnapshot(form_data=self.values, timestamp=self.clock(), user_id=self.actor.user_id)
        try:
            self.snapshot_store.set(snapshot)
        except Exception:  # noqa: BLE001
            logger.exception("Could not write local form backup")

    # -- steps ------------------------------------------------------------

    def go_to_step(self, index: int) -> int:
        self._require_ready()
        self._step_index = max(0, min(index, len(self.sections) - 1))
        return self._step_index

    def next_step(self) -> int:
        return self.go_to_step(self._step_index + 1)

    def previous_step(self) -> int:
        return self.go_to_step(self._step_index - 1)

    # -- persistence ------------------------------------------------------

    def validate(self) -> list[str]:
        return validate_form(self.sections, self._values)

    def _resolve_center(self) -> int | None:
        raw = self._values.get(CENTER_FIELD)
        if can_pick_center(self.actor.role) and not is_blank(raw):
            try:
                return int(str(raw).strip())
            except ValueError as exc:
                raise FormValidationError("Center must be a valid center number") from exc
        return self.actor.center_id

    def save_draft(self) -> DraftDto:
        self._require_ready()
        serial = self._values.get(SERIAL_NUMBER_FIELD)
        if is_blank(serial) or not str(serial).strip():
            raise FormValidationError("Enter Serial Number first", [SERIAL_NUMBER_FIELD])
        if self._is_saving_draft:
            raise ValueError("Draft save already in progress")

        request = DraftSaveRequest(
            patient_id=str(serial).strip(),
            center_id=self._resolve_center(),
            form_data=self.values,
        )
        self._is_saving_draft = True
        try:
            draft = self.draft_service.save_draft(request, self.actor)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Draft save failed: %s", exc)
            raise PersistenceError(str(exc)) from exc
        finally:
            self._is_saving_draft = False

        self._draft_id = draft.id
        self._last_saved_at = self.clock()
        return draft

    def submit(self) -> PatientRecordDto:
        self._require_ready()
        if self._is_submitting:
            raise ValueError("Submission already in progress")
        missing = self.validate()
        if missing:
            raise FormValidationError(f"Missing: {missing[0]}", missing)

        self._is_submitting = True
        try:
            request = PatientSubmitRequest(
                patient_id=str(self._values.get(SERIAL_NUMBER_FIELD, "")).strip(),
                age=self._values.get(AGE_FIELD, ""),  # type: ignore[arg-type]
                sex=str(self._values.get(SEX_FIELD, "")),
                center_id=self._resolve_center(),
                form_data=self.values,
            )
            if self._patient is not None:
                record = self.patient_service.update_patient(self._patient.id, request, self.actor)
            else:
                record = self.patient_service.create_patient(request, self.actor)
        except FormValidationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("Patient submission failed: %s", exc)
            raise PersistenceError(str(exc)) from exc
        finally:
            self._is_submitting = False

        if self._draft_id is not None:
            try:
                self.draft_service.delete_draft(self._draft_id, self.actor)
            except Exception:  # noqa: BLE001
                logger.exception("Could not delete draft %s after submit", self._draft_id)
            self._draft_id = None
        try:
            self.snapshot_store.clear()
        except Exception:  # noqa: BLE001
            logger.exception("Could not clear local form backup")
        self._patient = record
        return record
