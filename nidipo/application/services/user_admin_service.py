from __future__ import annotations

import json
from collections.abc import Callable
from typing import cast

from nidipo.application.dto.auth_dto import ProfileDto
from nidipo.application.dto.roster_dto import InvitationDto, InviteUserRequest, UpdateUserRequest
from nidipo.application.security import Role, can_manage_users
from nidipo.application.services.auth_service import invitation_to_dto, profile_from_user
from nidipo.config import settings
from nidipo.domain.constants import UserRole
from nidipo.domain.errors import AccessDeniedError
from nidipo.infrastructure.db.repositories.audit_repo import AuditLogRepository
from nidipo.infrastructure.db.repositories.center_repo import CenterRepository
from nidipo.infrastructure.db.repositories.invitation_repo import InvitationRepository
from nidipo.infrastructure.db.repositories.user_repo import UserRepository
from nidipo.infrastructure.db.session import session_scope
from nidipo.infrastructure.security.tokens import new_token


class UserAdminService:
    def __init__(
        self,
        user_repo: UserRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
        invitation_repo: InvitationRepository | None = None,
        center_repo: CenterRepository | None = None,
        session_factory: Callable = session_scope,
        portal_base_url: str = settings.portal_base_url,
    ) -> None:
        self.user_repo = user_repo or UserRepository()
        self.audit_repo = audit_repo or AuditLogRepository()
        self.invitation_repo = invitation_repo or InvitationRepository()
        self.center_repo = center_repo or CenterRepository()
        self.session_factory = session_factory
        self.portal_base_url = portal_base_url

    def list_users(self, actor_id: int, query: str | None = None) -> list[ProfileDto]:
        with self.session_factory() as session:
            self._require_admin(session, actor_id)
            return [profile_from_user(user) for user in self.user_repo.list_users(session, query=query)]

    def get_profile(self, user_id: int, actor_id: int) -> ProfileDto:
        with self.session_factory() as session:
            self._require_admin(session, actor_id)
            user = self.user_repo.get_by_id(session, user_id)
            if user is None:
                raise ValueError("User not found")
            return profile_from_user(user)

    def invite_user(self, request: InviteUserRequest, actor_id: int) -> InvitationDto:
        with self.session_factory() as session:
            self._require_admin(session, actor_id)
            if self.user_repo.get_by_email(session, request.email):
                raise ValueError("A user with this email already exists")
            if self.center_repo.get_by_id(session, request.center_id) is None:
                raise ValueError("Center not found")

            invitation = self.invitation_repo.create(
                session,
                email=request.email,
                role=request.role,
                center_id=request.center_id,
                token=new_token(),
                created_by=actor_id,
            )
            self.audit_repo.add_event(
                session,
                user_id=actor_id,
                entity_type="invitation",
                entity_id=str(invitation.id),
                action="invite_user",
                payload_json=json.dumps(
                    {"email": request.email, "name": request.name, "role": request.role, "center_id": request.center_id}
                ),
            )
            session.refresh(invitation)
            return invitation_to_dto(invitation, self.portal_base_url)

    def list_invitations(self, actor_id: int) -> list[InvitationDto]:
        with self.session_factory() as session:
            self._require_admin(session, actor_id)
            return [
                invitation_to_dto(item, self.portal_base_url)
                for item in self.invitation_repo.list_invitations(session)
            ]

    def revoke_invitation(self, invitation_id: int, actor_id: int) -> None:
        with self.session_factory() as session:
            self._require_admin(session, actor_id)
            if self.invitation_repo.get_by_id(session, invitation_id) is None:
                raise ValueError("Invitation not found")
            self.invitation_repo.delete(session, invitation_id)
            self.audit_repo.add_event(
                session,
                user_id=actor_id,
                entity_type="invitation",
                entity_id=str(invitation_id),
                action="revoke_invitation",
            )

    def update_user(self, user_id: int, request: UpdateUserRequest, actor_id: int) -> ProfileDto:
        with self.session_factory() as session:
            self._require_admin(session, actor_id)
            user = self.user_repo.get_by_id(session, user_id)
            if not user:
                raise ValueError("User not found")
            if request.role != UserRole.ADMIN and request.center_id is None:
                raise ValueError("Please select a center")
            if request.center_id is not None and self.center_repo.get_by_id(session, request.center_id) is None:
                raise ValueError("Center not found")

            self.user_repo.set_role_and_center(session, user_id, request.role, request.center_id)
            self.audit_repo.add_event(
                session,
                user_id=actor_id,
                entity_type="user",
                entity_id=str(user_id),
                action="update_user",
                payload_json=json.dumps({"role": request.role, "center_id": request.center_id}),
            )
            session.refresh(user)
            return profile_from_user(user)

    def delete_user(self, user_id: int, actor_id: int) -> None:
        """Irreversible: removes the account and every draft it owns."""
        with self.session_factory() as session:
            self._require_admin(session, actor_id)
            if user_id == actor_id:
                raise ValueError("You cannot delete your own account")
            user = self.user_repo.get_by_id(session, user_id)
            if not user:
                raise ValueError("User not found")
            email = cast(str, user.email)
            session.expunge(user)
            self.user_repo.delete(session, user_id)
            self.audit_repo.add_event(
                session,
                user_id=actor_id,
                entity_type="user",
                entity_id=str(user_id),
                action="delete_user",
                payload_json=json.dumps({"email": email}),
            )

    def _require_admin(self, session, actor_id: int) -> None:
        actor = self.user_repo.get_by_id(session, actor_id)
        if actor and can_manage_users(cast(Role, actor.role)):
            return
        # The caller's transaction rolls back on raise; log the denial separately.
        with self.session_factory() as audit_session:
            self.audit_repo.add_event(
                audit_session,
                user_id=actor_id if actor else None,
                entity_type="user",
                entity_id=str(actor_id),
                action="access_denied",
                payload_json=json.dumps({"reason": "admin_required"}),
            )
        raise AccessDeniedError("Insufficient permissions for this operation")
