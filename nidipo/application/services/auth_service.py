from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import cast

from nidipo.application.dto.auth_dto import (
    AuthEventName,
    AuthSession,
    InvitationSignUpRequest,
    ProfileDto,
    SignInRequest,
    SignUpRequest,
)
from nidipo.application.dto.roster_dto import InvitationDto
from nidipo.config import settings
from nidipo.domain.constants import UserRole
from nidipo.infrastructure.db.models_sqlalchemy import Invitation, User
from nidipo.infrastructure.db.repositories.audit_repo import AuditLogRepository
from nidipo.infrastructure.db.repositories.invitation_repo import InvitationRepository
from nidipo.infrastructure.db.repositories.password_reset_repo import PasswordResetRepository
from nidipo.infrastructure.db.repositories.user_repo import UserRepository
from nidipo.infrastructure.db.session import session_scope
from nidipo.infrastructure.security.password_hash import hash_password, needs_rehash, verify_password
from nidipo.infrastructure.security.tokens import invitation_link, new_token, reset_link

AuthListener = Callable[[AuthEventName, AuthSession | None], None]

INVALID_INVITATION_MESSAGE = "This invitation link is invalid or has expired."
INVALID_RESET_MESSAGE = "Invalid or expired reset link. Please request a new one."
MIN_PASSWORD_LENGTH = 6

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def profile_from_user(user: User) -> ProfileDto:
    center = user.center
    return ProfileDto(
        id=cast(int, user.id),
        name=cast(str, user.name),
        email=cast(str, user.email),
        role=cast(str, user.role),  # type: ignore[arg-type]
        center_id=cast(int | None, user.center_id),
        center_name=cast(str, center.name) if center is not None else None,
    )


def invitation_to_dto(invitation: Invitation, base_url: str) -> InvitationDto:
    center = invitation.center
    return InvitationDto(
        id=cast(int, invitation.id),
        email=cast(str, invitation.email),
        role=cast(str, invitation.role),  # type: ignore[arg-type]
        center_id=cast(int | None, invitation.center_id),
        center_name=cast(str, center.name) if center is not None else None,
        token=cast(str, invitation.token),
        link=invitation_link(base_url, cast(str, invitation.token)),
        created_at=cast(datetime, invitation.created_at),
    )


class Subscription:
    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe = unsubscribe
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._unsubscribe()


class AuthService:
    """Identity primitives: sign up/in/out, password recovery and auth state events."""

    def __init__(
        self,
        user_repo: UserRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
        invitation_repo: InvitationRepository | None = None,
        reset_repo: PasswordResetRepository | None = None,
        session_factory: Callable = session_scope,
        clock: Callable[[], datetime] = _utc_now,
        portal_base_url: str = settings.portal_base_url,
        reset_ttl: timedelta = timedelta(minutes=settings.reset_token_ttl_minutes),
    ) -> None:
        self.user_repo = user_repo or UserRepository()
        self.audit_repo = audit_repo or AuditLogRepository()
        self.invitation_repo = invitation_repo or InvitationRepository()
        self.reset_repo = reset_repo or PasswordResetRepository()
        self.session_factory = session_factory
        self.clock = clock
        self.portal_base_url = portal_base_url
        self.reset_ttl = reset_ttl
        self._session: AuthSession | None = None
        self._listeners: list[AuthListener] = []

    # -- auth state -------------------------------------------------------

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(_remove)

    def _emit(self, event: AuthEventName) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self._session)
            except Exception:  # noqa: BLE001
                logger.exception("Auth listener failed for %s", event)

    def get_session(self) -> AuthSession | None:
        return self._session

    # -- sign in / out ----------------------------------------------------

    def sign_in(self, request: SignInRequest) -> AuthSession:
        with self.session_factory() as session:
            user = self.user_repo.get_by_email(session, request.email)
            if not user or not user.is_active:
                raise ValueError("Invalid login credentials")
            if not verify_password(request.password, cast(str, user.password_hash)):
                raise ValueError("Invalid login credentials")
            if needs_rehash(cast(str, user.password_hash)):
                self.user_repo.set_password(
                    session, cast(int, user.id), hash_password(request.password, scheme="argon2")
                )

            self.audit_repo.add_event(
                session,
                user_id=cast(int, user.id),
                entity_type="user",
                entity_id=str(cast(int, user.id)),
                action="login",
                payload_json=json.dumps({"email": cast(str, user.email)}),
            )
            auth_session = AuthSession(
                user_id=cast(int, user.id),
                email=cast(str, user.email),
                issued_at=self.clock(),
            )
        self._session = auth_session
        logger.info("User %s signed in", auth_session.user_id)
        self._emit("SIGNED_IN")
        return auth_session

    def sign_out(self) -> None:
        previous = self._session
        self._session = None
        if previous is not None:
            with self.session_factory() as session:
                self.audit_repo.add_event(
                    session,
                    user_id=previous.user_id,
                    entity_type="user",
                    entity_id=str(previous.user_id),
                    action="logout",
                )
            logger.info("User %s signed out", previous.user_id)
        self._emit("SIGNED_OUT")

    def get_profile(self, user_id: int) -> ProfileDto:
        with self.session_factory() as session:
            user = self.user_repo.get_by_id(session, user_id)
            if user is None or not user.is_active:
                raise ValueError("Profile not found")
            return profile_from_user(user)

    # -- sign up ----------------------------------------------------------

    def sign_up(
        self,
        request: SignUpRequest,
        *,
        role: str = UserRole.RESEARCHER.value,
        center_id: int | None = None,
    ) -> int:
        with self.session_factory() as session:
            return self._create_user(session, request, role=role, center_id=center_id)

    def _create_user(self, session, request: SignUpRequest, *, role: str, center_id: int | None) -> int:
        if self.user_repo.get_by_email(session, request.email):
            raise ValueError("User already registered")
        user = self.user_repo.create(
            session,
            email=request.email,
            name=request.name,
            password_hash=hash_password(request.password, scheme="argon2"),
            role=role,
            center_id=center_id,
        )
        self.audit_repo.add_event(
            session,
            user_id=cast(int, user.id),
            entity_type="user",
            entity_id=str(user.id),
            action="sign_up",
            payload_json=json.dumps({"email": request.email, "role": role, "center_id": center_id}),
        )
        return cast(int, user.id)

    def get_invitation(self, token: str) -> InvitationDto:
        with self.session_factory() as session:
            invitation = self.invitation_repo.get_by_token(session, token.strip())
            if invitation is None:
                raise ValueError(INVALID_INVITATION_MESSAGE)
            return invitation_to_dto(invitation, self.portal_base_url)

    def sign_up_with_invitation(self, request: InvitationSignUpRequest) -> int:
        """Consume an invitation token once: create the user, then drop the invitation."""
        with self.session_factory() as session:
            invitation = self.invitation_repo.get_by_token(session, request.token)
            if invitation is None:
                raise ValueError(INVALID_INVITATION_MESSAGE)
            invitation_id = cast(int, invitation.id)
            user_id = self._create_user(
                session,
                SignUpRequest(name=request.name, email=cast(str, invitation.email), password=request.password),
                role=cast(str, invitation.role),
                center_id=cast(int | None, invitation.center_id),
            )
            self.invitation_repo.delete(session, invitation_id)
            self.audit_repo.add_event(
                session,
                user_id=user_id,
                entity_type="invitation",
                entity_id=str(invitation_id),
                action="consume_invitation",
            )
            return user_id

    # -- first-run admin --------------------------------------------------

    def is_admin_registered(self) -> bool:
        with self.session_factory() as session:
            return self.user_repo.has_admin(session)

    def promote_user_to_admin(self, user_id: int) -> None:
        with self.session_factory() as session:
            self._promote(session, user_id)
        self._emit("ADMIN_REGISTERED")

    def _promote(self, session, user_id: int) -> None:
        if self.user_repo.has_admin(session):
            raise ValueError("An administrator is already registered")
        user = self.user_repo.get_by_id(session, user_id)
        if user is None:
            raise ValueError("User not found")
        self.user_repo.set_role_and_center(session, user_id, UserRole.ADMIN.value, cast(int | None, user.center_id))
        self.audit_repo.add_event(
            session,
            user_id=user_id,
            entity_type="user",
            entity_id=str(user_id),
            action="promote_admin",
        )

    def bootstrap_admin(self, request: SignUpRequest) -> int:
        with self.session_factory() as session:
            if self.user_repo.has_admin(session):
                raise ValueError("An administrator is already registered")
            user_id = self._create_user(session, request, role=UserRole.RESEARCHER.value, center_id=None)
            self._promote(session, user_id)
        logger.info("Bootstrap administrator %s created", user_id)
        self._emit("ADMIN_REGISTERED")
        return user_id

    # -- passwords --------------------------------------------------------

    def request_password_reset(self, email: str) -> str | None:
        """Issue a reset link; unknown addresses are accepted silently."""
        with self.session_factory() as session:
            user = self.user_repo.get_by_email(session, email)
            if user is None or not user.is_active:
                logger.info("Password reset requested for unknown address")
                return None
            user_id = cast(int, user.id)
            token = new_token()
            self.reset_repo.create(
                session,
                user_id=user_id,
                token=token,
                expires_at=self.clock() + self.reset_ttl,
            )
            self.audit_repo.add_event(
                session,
                user_id=user_id,
                entity_type="user",
                entity_id=str(user_id),
                action="password_reset_requested",
            )
        link = reset_link(self.portal_base_url, token)
        # No mail transport; the link only goes to the log.
        logger.info("Password reset link for user %s: %s", user_id, link)
        return link

    def begin_password_recovery(self, token: str) -> AuthSession:
        with self.session_factory() as session:
            entry = self.reset_repo.get_by_token(session, token.strip())
            now = self.clock()
            if entry is None or entry.used_at is not None or _as_utc(cast(datetime, entry.expires_at)) <= now:
                raise ValueError(INVALID_RESET_MESSAGE)
            user = self.user_repo.get_by_id(session, cast(int, entry.user_id))
            if user is None or not user.is_active:
                raise ValueError(INVALID_RESET_MESSAGE)
            self.reset_repo.mark_used(session, entry, now)
            auth_session = AuthSession(
                user_id=cast(int, user.id),
                email=cast(str, user.email),
                issued_at=now,
                recovery=True,
            )
        self._session = auth_session
        self._emit("PASSWORD_RECOVERY")
        return auth_session

    def update_password(self, new_password: str) -> None:
        current = self._session
        if current is None:
            raise ValueError("Auth session missing")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        with self.session_factory() as session:
            self.user_repo.set_password(session, current.user_id, hash_password(new_password, scheme="argon2"))
            self.audit_repo.add_event(
                session,
                user_id=current.user_id,
                entity_type="user",
                entity_id=str(current.user_id),
                action="update_password",
            )
        if current.recovery:
            self._session = current.model_copy(update={"recovery": False})
            self._emit("SIGNED_IN")
