from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from nidipo.infrastructure.db.models_sqlalchemy import PasswordReset


class PasswordResetRepository:
    def create(self, session: Session, *, user_id: int, token: str, expires_at: datetime) -> PasswordReset:
        entry = PasswordReset(user_id=user_id, token=token, expires_at=expires_at)
        session.add(entry)
        session.flush()
        return entry

    def get_by_token(self, session: Session, token: str) -> PasswordReset | None:
        stmt = select(PasswordReset).where(PasswordReset.token == token)
        return session.execute(stmt).scalar_one_or_none()

    def mark_used(self, session: Session, entry: PasswordReset, used_at: datetime) -> None:
        entry.used_at = used_at  # type: ignore[assignment]
        session.flush()
