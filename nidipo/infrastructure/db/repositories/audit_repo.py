from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.engine import Row
from sqlalchemy.orm import Session

from nidipo.infrastructure.db.models_sqlalchemy import AuditLog, User


class AuditLogRepository:
    def add_event(
        self,
        session: Session,
        *,
        user_id: int | None,
        entity_type: str,
        entity_id: str,
        action: str,
        payload_json: str | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            payload_json=payload_json,
        )
        session.add(entry)
        return entry

    def list_recent(self, session: Session, limit: int = 10) -> list[Row]:
        """Newest first, joined with the acting user's email where one is known."""
        stmt = (
            select(
                AuditLog.event_ts,
                AuditLog.action,
                AuditLog.entity_type,
                AuditLog.entity_id,
                User.email,
            )
            .select_from(AuditLog)
            .outerjoin(User, User.id == AuditLog.user_id)
            .order_by(AuditLog.event_ts.desc(), AuditLog.id.desc())
            .limit(limit)
        )
        return list(session.execute(stmt).all())
