from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy import func, select

from nidipo.domain.models import DashboardStats
from nidipo.infrastructure.db import models_sqlalchemy as models
from nidipo.infrastructure.db.repositories.audit_repo import AuditLogRepository
from nidipo.infrastructure.db.session import session_scope


class DashboardService:
    def __init__(
        self,
        audit_repo: AuditLogRepository | None = None,
        session_factory: Callable = session_scope,
    ) -> None:
        self.audit_repo = audit_repo or AuditLogRepository()
        self.session_factory = session_factory

    def get_counts(self) -> DashboardStats:
        with self.session_factory() as session:
            return DashboardStats(
                patients=session.execute(select(func.count(models.Patient.id))).scalar() or 0,
                users=session.execute(select(func.count(models.User.id))).scalar() or 0,
                centers=session.execute(select(func.count(models.Center.id))).scalar() or 0,
            )

    def list_recent_audit(self, limit: int = 10) -> list[dict[str, Any]]:
        with self.session_factory() as session:
            return [
                {
                    "event_ts": row.event_ts,
                    "action": row.action,
                    "entity_type": row.entity_type,
                    "entity_id": row.entity_id,
                    "email": row.email or "",
                }
                for row in self.audit_repo.list_recent(session, limit=limit)
            ]
