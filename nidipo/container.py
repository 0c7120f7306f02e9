from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from nidipo.application.services.auth_service import AuthService
from nidipo.application.services.center_service import CenterService
from nidipo.application.services.dashboard_service import DashboardService
from nidipo.application.services.draft_service import DraftService
from nidipo.application.services.form_engine import ClinicalFormEngine
from nidipo.application.services.patient_service import PatientService
from nidipo.application.services.session_gate import SessionGate
from nidipo.application.services.user_admin_service import UserAdminService
from nidipo.config import settings
from nidipo.domain.study_form import STUDY_FORM
from nidipo.infrastructure.db.repositories.audit_repo import AuditLogRepository
from nidipo.infrastructure.db.repositories.center_repo import CenterRepository
from nidipo.infrastructure.db.repositories.draft_repo import DraftRepository
from nidipo.infrastructure.db.repositories.invitation_repo import InvitationRepository
from nidipo.infrastructure.db.repositories.password_reset_repo import PasswordResetRepository
from nidipo.infrastructure.db.repositories.patient_repo import PatientRepository
from nidipo.infrastructure.db.repositories.user_repo import UserRepository
from nidipo.infrastructure.db.session import session_scope
from nidipo.infrastructure.storage.local_snapshot import JsonFileSnapshotStore, LocalSnapshotStore


@dataclass
class Container:
    user_repo: UserRepository
    audit_repo: AuditLogRepository
    center_repo: CenterRepository
    invitation_repo: InvitationRepository
    reset_repo: PasswordResetRepository
    patient_repo: PatientRepository
    draft_repo: DraftRepository
    snapshot_store: LocalSnapshotStore

    auth_service: AuthService
    user_admin_service: UserAdminService
    center_service: CenterService
    draft_service: DraftService
    patient_service: PatientService
    dashboard_service: DashboardService
    session_gate: SessionGate

    def new_form_engine(self, **kwargs) -> ClinicalFormEngine:
        """Engine for the signed-in user; pass ``patient=`` or ``draft=`` to edit."""
        actor = self.session_gate.session_context()
        if actor is None:
            raise ValueError("Sign in to enter patient data")
        return ClinicalFormEngine(
            STUDY_FORM,
            actor,
            self.snapshot_store,
            self.draft_service,
            self.patient_service,
            **kwargs,
        )


def build_container(snapshot_file: Path | None = None) -> Container:
    user_repo = UserRepository()
    audit_repo = AuditLogRepository()
    center_repo = CenterRepository()
    invitation_repo = InvitationRepository()
    reset_repo = PasswordResetRepository()
    patient_repo = PatientRepository()
    draft_repo = DraftRepository()
    snapshot_store = JsonFileSnapshotStore(snapshot_file or settings.snapshot_file)

    auth_service = AuthService(
        user_repo=user_repo,
        audit_repo=audit_repo,
        invitation_repo=invitation_repo,
        reset_repo=reset_repo,
        session_factory=session_scope,
    )
    user_admin_service = UserAdminService(
        user_repo=user_repo,
        audit_repo=audit_repo,
        invitation_repo=invitation_repo,
        center_repo=center_repo,
        session_factory=session_scope,
    )
    center_service = CenterService(
        repo=center_repo,
        user_repo=user_repo,
        patient_repo=patient_repo,
        invitation_repo=invitation_repo,
        draft_repo=draft_repo,
        audit_repo=audit_repo,
        session_factory=session_scope,
    )
    draft_service = DraftService(repo=draft_repo, audit_repo=audit_repo, session_factory=session_scope)
    patient_service = PatientService(
        repo=patient_repo,
        center_repo=center_repo,
        audit_repo=audit_repo,
        session_factory=session_scope,
    )
    dashboard_service = DashboardService(audit_repo=audit_repo, session_factory=session_scope)
    session_gate = SessionGate(auth_service=auth_service, dashboard_service=dashboard_service)

    return Container(
        user_repo=user_repo,
        audit_repo=audit_repo,
        center_repo=center_repo,
        invitation_repo=invitation_repo,
        reset_repo=reset_repo,
        patient_repo=patient_repo,
        draft_repo=draft_repo,
        snapshot_store=snapshot_store,
        auth_service=auth_service,
        user_admin_service=user_admin_service,
        center_service=center_service,
        draft_service=draft_service,
        patient_service=patient_service,
        dashboard_service=dashboard_service,
        session_gate=session_gate,
    )
