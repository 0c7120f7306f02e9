from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import cast

from nidipo.application.dto.auth_dto import SessionContext
from nidipo.application.dto.patient_dto import DraftDto, DraftSaveRequest
from nidipo.application.security import can_view_all_centers
from nidipo.domain.errors import AccessDeniedError
from nidipo.infrastructure.db.repositories.audit_repo import AuditLogRepository
from nidipo.infrastructure.db.repositories.draft_repo import DraftRepository
from nidipo.infrastructure.db.session import session_scope

logger = logging.getLogger(__name__)


class DraftService:
    def __init__(
        self,
        repo: DraftRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
        session_factory: Callable = session_scope,
    ) -> None:
        self.repo = repo or DraftRepository()
        self.audit_repo = audit_repo or AuditLogRepository()
        self.session_factory = session_factory

    def save_draft(self, request: DraftSaveRequest, actor: SessionContext) -> DraftDto:
        """Upsert keyed on (user, patient id, center); one in-progress draft per key."""
        with self.session_factory() as session:
            draft, created = self.repo.upsert(
                session,
                user_id=actor.user_id,
                patient_id=request.patient_id,
                center_id=request.center_id,
                form_data=request.form_data,
            )
            self.audit_repo.add_event(
                session,
                user_id=actor.user_id,
                entity_type="draft",
                entity_id=str(draft.id),
                action="create_draft" if created else "update_draft",
                payload_json=json.dumps(
                    {"patient_id": request.patient_id, "center_id": request.center_id},
                    ensure_ascii=False,
                ),
            )
            return DraftDto.model_validate(self.repo.to_dict(draft))

    def list_drafts(self, actor: SessionContext) -> list[DraftDto]:
        user_filter = None if can_view_all_centers(actor.role) else actor.user_id
        with self.session_factory() as session:
            return [
                DraftDto.model_validate(self.repo.to_dict(item))
                for item in self.repo.list_drafts(session, user_id=user_filter)
            ]

    def get_draft(self, draft_id: int, actor: SessionContext) -> DraftDto:
        with self.session_factory() as session:
            draft = self.repo.get_by_id(session, draft_id)
            if draft is None:
                raise ValueError("Draft not found")
            self._require_owner(cast(int, draft.user_id), actor)
            return DraftDto.model_validate(self.repo.to_dict(draft))

    def delete_draft(self, draft_id: int, actor: SessionContext) -> None:
        with self.session_factory() as session:
            draft = self.repo.get_by_id(session, draft_id)
            if draft is None:
                raise ValueError("Draft not found")
            self._require_owner(cast(int, draft.user_id), actor)
            patient_id = cast(str, draft.patient_id)
            session.expunge(draft)
            self.repo.delete(session, draft_id)
            self.audit_repo.add_event(
                session,
                user_id=actor.user_id,
                entity_type="draft",
                entity_id=str(draft_id),
                action="delete_draft",
                payload_json=json.dumps({"patient_id": patient_id}, ensure_ascii=False),
            )
        logger.info("Draft %s deleted by user %s", draft_id, actor.user_id)

    def _require_owner(self, owner_id: int, actor: SessionContext) -> None:
        if owner_id != actor.user_id and not can_view_all_centers(actor.role):
            raise AccessDeniedError("This draft belongs to another user")
