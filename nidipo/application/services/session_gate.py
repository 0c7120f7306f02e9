from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum

from nidipo.application.dto.auth_dto import AuthEventName, AuthSession, ProfileDto, SessionContext
from nidipo.application.security import can_access_admin_view, navigation_for
from nidipo.application.services.auth_service import AuthService, Subscription
from nidipo.application.services.dashboard_service import DashboardService
from nidipo.domain.models import DashboardStats

logger = logging.getLogger(__name__)

PROFILE_LOAD_FAILED_MESSAGE = "Could not fetch user profile."

GateListener = Callable[["GateState"], None]
Notifier = Callable[[str], None]


class GateState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    PENDING_ADMIN_BOOTSTRAP = "pending_admin_bootstrap"
    INVITATION_SIGNUP = "invitation_signup"
    PASSWORD_RECOVERY = "password_recovery"
    AUTHENTICATED = "authenticated"


def _log_notice(message: str) -> None:
    logger.warning(message)


class SessionGate:
    """Decides which top-level surface the user sees, driven by auth events."""

    def __init__(
        self,
        auth_service: AuthService,
        dashboard_service: DashboardService | None = None,
        notifier: Notifier = _log_notice,
    ) -> None:
        self.auth_service = auth_service
        self.dashboard_service = dashboard_service or DashboardService(session_factory=auth_service.session_factory)
        self.notifier = notifier
        self._state = GateState.UNAUTHENTICATED
        self._profile: ProfileDto | None = None
        self._stats = DashboardStats()
        self._invitation_token: str | None = None
        self._subscription: Subscription | None = None
        self._listeners: list[GateListener] = []

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def profile(self) -> ProfileDto | None:
        return self._profile

    @property
    def stats(self) -> DashboardStats:
        return self._stats

    @property
    def invitation_token(self) -> str | None:
        return self._invitation_token

    def session_context(self) -> SessionContext | None:
        if self._state != GateState.AUTHENTICATED or self._profile is None:
            return None
        return self._profile.to_session_context()

    def start(self, *, invitation_token: str | None = None, recovery: bool = False) -> GateState:
        if self._subscription is None:
            self._subscription = self.auth_service.on_auth_state_change(self._on_auth_event)

        session = self.auth_service.get_session()
        token = (invitation_token or "").strip()
        if recovery or (session is not None and session.recovery):
            self._set_state(GateState.PASSWORD_RECOVERY)
        elif token:
            self._invitation_token = token
            self._set_state(GateState.INVITATION_SIGNUP)
        elif session is not None:
            self._load_profile(session)
        elif self.auth_service.is_admin_registered():
            self._set_state(GateState.UNAUTHENTICATED)
        else:
            self._set_state(GateState.PENDING_ADMIN_BOOTSTRAP)
        return self._state

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def subscribe(self, listener: GateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def allowed_pages(self) -> list[tuple[str, str]]:
        if self._state != GateState.AUTHENTICATED or self._profile is None:
            return []
        return navigation_for(self._profile.role)

    def refresh_stats(self) -> DashboardStats:
        try:
            self._stats = self.dashboard_service.get_counts()
        except Exception:  # noqa: BLE001
            logger.warning("Dashboard counts unavailable", exc_info=True)
        return self._stats

    def _on_auth_event(self, event: AuthEventName, session: AuthSession | None) -> None:
        if event == "PASSWORD_RECOVERY":
            self._set_state(GateState.PASSWORD_RECOVERY)
        elif event == "SIGNED_IN" and session is not None:
            self._load_profile(session)
        elif event == "ADMIN_REGISTERED":
            if self._state == GateState.PENDING_ADMIN_BOOTSTRAP:
                self._set_state(GateState.UNAUTHENTICATED)
        elif event == "SIGNED_OUT":
            self._profile = None
            self._stats = DashboardStats()
            self._set_state(GateState.UNAUTHENTICATED)

    def _load_profile(self, session: AuthSession) -> None:
        try:
            profile = self.auth_service.get_profile(session.user_id)
        except Exception:  # noqa: BLE001
            logger.exception("Profile load failed for user %s; signing out", session.user_id)
            self._profile = None
            self.notifier(PROFILE_LOAD_FAILED_MESSAGE)
            self.auth_service.sign_out()
            self._set_state(GateState.UNAUTHENTICATED)
            return

        self._profile = profile
        self._invitation_token = None
        self._stats = DashboardStats()
        if can_access_admin_view(profile.role):
            self.refresh_stats()
        self._set_state(GateState.AUTHENTICATED)

    def _set_state(self, state: GateState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:  # noqa: BLE001
                logger.exception("Gate listener failed for %s", state)
