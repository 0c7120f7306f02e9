from pathlib import Path

from sqlalchemy import create_engine

from nidipo.application.dto.auth_dto import SignInRequest, SignUpRequest
from nidipo.application.services.auth_service import AuthService
from nidipo.application.services.session_gate import PROFILE_LOAD_FAILED_MESSAGE, GateState, SessionGate
from nidipo.domain.models import DashboardStats
from nidipo.infrastructure.db.models_sqlalchemy import Base
from nidipo.infrastructure.db.session import SessionFactory, build_sessionmaker, transactional_scope


def make_session_factory(db_path: Path) -> SessionFactory:
    engine = create_engine(f"sqlite:///{db_path.as_posix()}", future=True)
    Base.metadata.create_all(engine)
    return transactional_scope(build_sessionmaker(engine))


class _BrokenDashboard:
    def get_counts(self) -> DashboardStats:
        raise RuntimeError("stats RPC failed")


def test_fresh_install_requires_admin_bootstrap(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "gate.db")
    auth_service = AuthService(session_factory=session_factory)
    gate = SessionGate(auth_service)
    seen: list[GateState] = []
    gate.subscribe(seen.append)

    assert gate.start() == GateState.PENDING_ADMIN_BOOTSTRAP

    auth_service.bootstrap_admin(SignUpRequest(name="A", email="a@example.org", password="Secret123"))
    auth_service.sign_in(SignInRequest(email="a@example.org", password="Secret123"))

    assert gate.state == GateState.AUTHENTICATED
    assert gate.profile is not None and gate.profile.role == "admin"
    assert gate.stats == DashboardStats(patients=0, users=1, centers=0)
    assert [page for page, _title in gate.allowed_pages()][-2:] == ["users", "centers"]
    assert seen == [GateState.PENDING_ADMIN_BOOTSTRAP, GateState.UNAUTHENTICATED, GateState.AUTHENTICATED]

    auth_service.sign_out()
    assert gate.state == GateState.UNAUTHENTICATED
    assert gate.profile is None
    assert gate.allowed_pages() == []


def test_bootstrap_moves_gate_to_login(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "gate.db")
    auth_service = AuthService(session_factory=session_factory)
    gate = SessionGate(auth_service)
    assert gate.start() == GateState.PENDING_ADMIN_BOOTSTRAP

    auth_service.bootstrap_admin(SignUpRequest(name="A", email="a@example.org", password="Secret123"))

    assert gate.state == GateState.UNAUTHENTICATED
    assert gate.profile is None
    assert auth_service.get_session() is None


def test_start_priority_order(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "gate.db")
    auth_service = AuthService(session_factory=session_factory)
    auth_service.bootstrap_admin(SignUpRequest(name="A", email="a@example.org", password="Secret123"))

    assert SessionGate(auth_service).start(invitation_token="tok", recovery=True) == GateState.PASSWORD_RECOVERY

    invited = SessionGate(auth_service)
    assert invited.start(invitation_token=" tok ") == GateState.INVITATION_SIGNUP
    assert invited.invitation_token == "tok"
    invited.close()

    assert SessionGate(auth_service).start() == GateState.UNAUTHENTICATED


def test_existing_session_is_resumed(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "gate.db")
    auth_service = AuthService(session_factory=session_factory)
    auth_service.sign_up(SignUpRequest(name="R", email="r@example.org", password="Secret123"))
    auth_service.sign_in(SignInRequest(email="r@example.org", password="Secret123"))

    gate = SessionGate(auth_service)
    assert gate.start() == GateState.AUTHENTICATED
    assert gate.stats == DashboardStats()
    assert [page for page, _title in gate.allowed_pages()] == ["dashboard", "patients", "add_patient", "drafts"]
    context = gate.session_context()
    assert context is not None and context.role == "researcher"


def test_profile_failure_signs_out(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "gate.db")
    auth_service = AuthService(session_factory=session_factory)
    auth_service.bootstrap_admin(SignUpRequest(name="A", email="a@example.org", password="Secret123"))
    notices: list[str] = []
    gate = SessionGate(auth_service, notifier=notices.append)
    gate.start()

    def _fail(_user_id: int):
        raise ValueError("Profile not found")

    auth_service.get_profile = _fail  # type: ignore[method-assign]
    auth_service.sign_in(SignInRequest(email="a@example.org", password="Secret123"))

    assert notices == [PROFILE_LOAD_FAILED_MESSAGE]
    assert gate.state == GateState.UNAUTHENTICATED
    assert gate.profile is None
    assert auth_service.get_session() is None


def test_stats_failure_is_best_effort(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "gate.db")
    auth_service = AuthService(session_factory=session_factory)
    auth_service.bootstrap_admin(SignUpRequest(name="A", email="a@example.org", password="Secret123"))
    gate = SessionGate(auth_service, dashboard_service=_BrokenDashboard())  # type: ignore[arg-type]
    gate.start()

    auth_service.sign_in(SignInRequest(email="a@example.org", password="Secret123"))

    assert gate.state == GateState.AUTHENTICATED
    assert gate.stats == DashboardStats()


def test_close_stops_following_auth_events(tmp_path: Path) -> None:
    session_factory = make_session_factory(tmp_path / "gate.db")
    auth_service = AuthService(session_factory=session_factory)
    auth_service.bootstrap_admin(SignUpRequest(name="A", email="a@example.org", password="Secret123"))
    gate = SessionGate(auth_service)
    gate.start()
    unsubscribe = gate.subscribe(lambda _state: None)
    unsubscribe()
    gate.close()

    auth_service.sign_in(SignInRequest(email="a@example.org", password="Secret123"))

    assert gate.state == GateState.UNAUTHENTICATED
