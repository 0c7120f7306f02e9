from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from nidipo.infrastructure.db.engine import get_engine

SessionFactory = Callable[[], AbstractContextManager[Session]]


def build_sessionmaker(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


def transactional_scope(session_local: sessionmaker[Session]) -> SessionFactory:
    """Wrap a sessionmaker so each ``with`` block commits on success and rolls back on error."""

    @contextmanager
    def _scope() -> Iterator[Session]:
        session: Session = session_local()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _scope


engine = get_engine()
SessionLocal = build_sessionmaker(engine)
session_scope = transactional_scope(SessionLocal)
