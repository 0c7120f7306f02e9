from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import cast

import pytest
from sqlalchemy import create_engine, select

from nidipo.application.dto.auth_dto import InvitationSignUpRequest, SignInRequest, SignUpRequest
from nidipo.application.dto.roster_dto import InviteUserRequest
from nidipo.application.services.auth_service import (
    INVALID_INVITATION_MESSAGE,
    INVALID_RESET_MESSAGE,
    AuthService,
)
from nidipo.application.services.user_admin_service import UserAdminService
from nidipo.infrastructure.db.models_sqlalchemy import AuditLog, Base, User
from nidipo.infrastructure.db.repositories.center_repo import CenterRepository
from nidipo.infrastructure.db.session import SessionFactory, build_sessionmaker, transactional_scope
from nidipo.infrastructure.security.password_hash import hash_password


def make_session_factory(db_path: Path) -> SessionFactory:
    engine = create_engine(f"sqlite:///{db_path.as_posix()}", future=True)
    Base.metadata.create_all(engine)
    return transactional_scope(build_sessionmaker(engine))


def _seed_center(session_factory) -> int:
    with session_factory() as session:
        center = CenterRepository().create(session, name="Kano General", location="Kano")
        return cast(int, center.id)


def test_bootstrap_admin_then_sign_in(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "auth.db")
    auth_service = AuthService(session_factory=session_factory)
    events: list[str] = []
    auth_service.on_auth_state_change(lambda event, _session: events.append(event))

    assert auth_service.is_admin_registered() is False
    admin_id = auth_service.bootstrap_admin(
        SignUpRequest(name="Ada Admin", email="Admin@Example.org", password="Secret123")
    )
    assert auth_service.is_admin_registered() is True

    session = auth_service.sign_in(SignInRequest(email="admin@example.org", password="Secret123"))
    assert session.user_id == admin_id
    assert auth_service.get_session() == session
    assert auth_service.get_profile(admin_id).role == "admin"
    assert events == ["ADMIN_REGISTERED", "SIGNED_IN"]

    auth_service.sign_out()
    assert auth_service.get_session() is None
    assert events == ["ADMIN_REGISTERED", "SIGNED_IN", "SIGNED_OUT"]


def test_second_bootstrap_is_refused(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "auth.db")
    auth_service = AuthService(session_factory=session_factory)
    auth_service.bootstrap_admin(SignUpRequest(name="A", email="a@example.org", password="Secret123"))

    with pytest.raises(ValueError, match="already registered"):
        auth_service.bootstrap_admin(SignUpRequest(name="B", email="b@example.org", password="Secret123"))
    other_id = auth_service.sign_up(SignUpRequest(name="B", email="b@example.org", password="Secret123"))
    with pytest.raises(ValueError, match="already registered"):
        auth_service.promote_user_to_admin(other_id)


def test_sign_in_rejects_bad_credentials(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "auth.db")
    auth_service = AuthService(session_factory=session_factory)
    auth_service.sign_up(SignUpRequest(name="R", email="r@example.org", password="Secret123"))

    with pytest.raises(ValueError, match="Invalid login credentials"):
        auth_service.sign_in(SignInRequest(email="r@example.org", password="wrong-pass"))
    with pytest.raises(ValueError, match="Invalid login credentials"):
        auth_service.sign_in(SignInRequest(email="nobody@example.org", password="Secret123"))
    with pytest.raises(ValueError, match="User already registered"):
        auth_service.sign_up(SignUpRequest(name="R2", email="R@example.org", password="Secret123"))


def test_legacy_bcrypt_hash_is_upgraded_on_sign_in(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "auth.db")
    with session_factory() as session:
        session.add(
            User(
                email="old@example.org",
                name="Old",
                password_hash=hash_password("Secret123", scheme="bcrypt"),
                role="researcher",
            )
        )

    AuthService(session_factory=session_factory).sign_in(SignInRequest(email="old@example.org", password="Secret123"))

    with session_factory() as session:
        stored = session.execute(select(User.password_hash)).scalar_one()
    assert stored.startswith("$argon2")


def test_invitation_signup_consumes_token(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "auth.db")
    center_id = _seed_center(session_factory)
    auth_service = AuthService(session_factory=session_factory, portal_base_url="https://portal.test/")
    admin_service = UserAdminService(session_factory=session_factory, portal_base_url="https://portal.test/")
    admin_id = auth_service.bootstrap_admin(SignUpRequest(name="A", email="a@example.org", password="Secret123"))

    invitation = admin_service.invite_user(
        InviteUserRequest(name="Nurse", email="nurse@example.org", role="data-entry", center_id=center_id),
        actor_id=admin_id,
    )
    assert invitation.link == f"https://portal.test/#/?token={invitation.token}"
    assert auth_service.get_invitation(invitation.token).center_name == "Kano General"

    user_id = auth_service.sign_up_with_invitation(
        InvitationSignUpRequest(token=invitation.token, name="Nurse Joy", password="Secret123")
    )
    profile = auth_service.get_profile(user_id)
    assert profile.email == "nurse@example.org"
    assert profile.role == "data-entry"
    assert profile.center_id == center_id

    with pytest.raises(ValueError, match=INVALID_INVITATION_MESSAGE):
        auth_service.sign_up_with_invitation(
            InvitationSignUpRequest(token=invitation.token, name="Again", password="Secret123")
        )


def test_password_recovery_flow(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "auth.db")
    now = datetime(2026, 6, 1, 10, 0, tzinfo=UTC)
    clock = {"now": now}
    auth_service = AuthService(
        session_factory=session_factory,
        clock=lambda: clock["now"],
        portal_base_url="https://portal.test/",
        reset_ttl=timedelta(hours=1),
    )
    events: list[str] = []
    auth_service.on_auth_state_change(lambda event, _session: events.append(event))
    auth_service.sign_up(SignUpRequest(name="R", email="r@example.org", password="Secret123"))

    assert auth_service.request_password_reset("unknown@example.org") is None
    link = auth_service.request_password_reset("r@example.org")
    assert link is not None and link.startswith("https://portal.test#/reset-password?token=")
    token = link.split("token=", 1)[1]

    with pytest.raises(ValueError, match="Auth session missing"):
        auth_service.update_password("NewSecret1")

    session = auth_service.begin_password_recovery(token)
    assert session.recovery is True
    with pytest.raises(ValueError, match="at least 6"):
        auth_service.update_password("abc")
    auth_service.update_password("NewSecret1")

    assert events == ["PASSWORD_RECOVERY", "SIGNED_IN"]
    current = auth_service.get_session()
    assert current is not None and current.recovery is False

    auth_service.sign_out()
    auth_service.sign_in(SignInRequest(email="r@example.org", password="NewSecret1"))

    with pytest.raises(ValueError, match=INVALID_RESET_MESSAGE):
        auth_service.begin_password_recovery(token)


def test_expired_reset_token_is_rejected(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "auth.db")
    clock = {"now": datetime(2026, 6, 1, 10, 0, tzinfo=UTC)}
    auth_service = AuthService(session_factory=session_factory, clock=lambda: clock["now"])
    auth_service.sign_up(SignUpRequest(name="R", email="r@example.org", password="Secret123"))
    link = auth_service.request_password_reset("r@example.org")
    assert link is not None

    clock["now"] += timedelta(hours=2)
    with pytest.raises(ValueError, match=INVALID_RESET_MESSAGE):
        auth_service.begin_password_recovery(link.split("token=", 1)[1])


def test_listener_errors_do_not_break_sign_in(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "auth.db")
    auth_service = AuthService(session_factory=session_factory)
    auth_service.sign_up(SignUpRequest(name="R", email="r@example.org", password="Secret123"))
    received: list[str] = []

    def _broken(_event, _session) -> None:
        raise RuntimeError("listener bug")

    auth_service.on_auth_state_change(_broken)
    subscription = auth_service.on_auth_state_change(lambda event, _session: received.append(event))

    auth_service.sign_in(SignInRequest(email="r@example.org", password="Secret123"))
    subscription.unsubscribe()
    auth_service.sign_out()

    assert received == ["SIGNED_IN"]
    with session_factory() as session:
        actions = list(session.execute(select(AuditLog.action)).scalars())
    assert "login" in actions and "logout" in actions
