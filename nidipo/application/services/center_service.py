from __future__ import annotations

import json
from collections.abc import Callable
from typing import cast

from nidipo.application.dto.roster_dto import CenterDto, CenterRequest
from nidipo.application.security import Role, can_manage_centers
from nidipo.domain.errors import AccessDeniedError
from nidipo.infrastructure.db.models_sqlalchemy import Center
from nidipo.infrastructure.db.repositories.audit_repo import AuditLogRepository
from nidipo.infrastructure.db.repositories.center_repo import CenterRepository
from nidipo.infrastructure.db.repositories.draft_repo import DraftRepository
from nidipo.infrastructure.db.repositories.invitation_repo import InvitationRepository
from nidipo.infrastructure.db.repositories.patient_repo import PatientRepository
from nidipo.infrastructure.db.repositories.user_repo import UserRepository
from nidipo.infrastructure.db.session import session_scope


def _to_dto(center: Center) -> CenterDto:
    return CenterDto(id=cast(int, center.id), name=cast(str, center.name), location=cast(str, center.location))


class CenterService:
    def __init__(
        self,
        repo: CenterRepository | None = None,
        user_repo: UserRepository | None = None,
        patient_repo: PatientRepository | None = None,
        invitation_repo: InvitationRepository | None = None,
        draft_repo: DraftRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
        session_factory: Callable = session_scope,
    ) -> None:
        self.repo = repo or CenterRepository()
        self.user_repo = user_repo or UserRepository()
        self.patient_repo = patient_repo or PatientRepository()
        self.invitation_repo = invitation_repo or InvitationRepository()
        self.draft_repo = draft_repo or DraftRepository()
        self.audit_repo = audit_repo or AuditLogRepository()
        self.session_factory = session_factory

    def list_centers(self) -> list[CenterDto]:
        with self.session_factory() as session:
            return [_to_dto(center) for center in self.repo.list_centers(session)]

    def create_center(self, request: CenterRequest, actor_id: int) -> CenterDto:
        with self.session_factory() as session:
            self._require_admin(session, actor_id)
            if self.repo.get_by_name(session, request.name):
                raise ValueError("A center with this name already exists")
            center = self.repo.create(session, name=request.name, location=request.location)
            self._audit(session, actor_id, center, "create_center")
            return _to_dto(center)

    def update_center(self, center_id: int, request: CenterRequest, actor_id: int) -> CenterDto:
        with self.session_factory() as session:
            self._require_admin(session, actor_id)
            center = self.repo.get_by_id(session, center_id)
            if center is None:
                raise ValueError("Center not found")
            clash = self.repo.get_by_name(session, request.name)
            if clash is not None and clash.id != center.id:
                raise ValueError("A center with this name already exists")
            self.repo.update(session, center, name=request.name, location=request.location)
            self._audit(session, actor_id, center, "update_center")
            return _to_dto(center)

    def delete_center(self, center_id: int, actor_id: int) -> None:
        with self.session_factory() as session:
            self._require_admin(session, actor_id)
            center = self.repo.get_by_id(session, center_id)
            if center is None:
                raise ValueError("Center not found")
            if self.patient_repo.count_in_center(session, center_id):
                raise ValueError("Center still has patient records")
            if self.user_repo.count_in_center(session, center_id):
                raise ValueError("Center still has assigned users")
            if self.invitation_repo.count_in_center(session, center_id):
                raise ValueError("Center still has pending invitations")
            if self.draft_repo.count_in_center(session, center_id):
                raise ValueError("Center still has saved drafts")
            self._audit(session, actor_id, center, "delete_center")
            session.expunge(center)
            self.repo.delete(session, center_id)

    def _audit(self, session, actor_id: int, center: Center, action: str) -> None:
        self.audit_repo.add_event(
            session,
            user_id=actor_id,
            entity_type="center",
            entity_id=str(center.id),
            action=action,
            payload_json=json.dumps({"name": center.name, "location": center.location}, ensure_ascii=False),
        )

    def _require_admin(self, session, actor_id: int) -> None:
        actor = self.user_repo.get_by_id(session, actor_id)
        if actor and can_manage_centers(cast(Role, actor.role)):
            return
        with self.session_factory() as audit_session:
            self.audit_repo.add_event(
                audit_session,
                user_id=actor_id if actor else None,
                entity_type="center",
                entity_id="*",
                action="access_denied",
                payload_json=json.dumps({"reason": "admin_required", "permission": "manage_centers"}),
            )
        raise AccessDeniedError("Insufficient permissions for this operation")
