from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from nidipo.infrastructure.db.models_sqlalchemy import Draft


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DraftRepository:
    def get_by_id(self, session: Session, draft_id: int) -> Draft | None:
        return session.get(Draft, draft_id)

    def find_by_key(
        self,
        session: Session,
        *,
        user_id: int,
        patient_id: str,
        center_id: int | None,
    ) -> Draft | None:
        stmt = select(Draft).where(Draft.user_id == user_id, Draft.patient_id == patient_id)
        if center_id is None:
            stmt = stmt.where(Draft.center_id.is_(None))
        else:
            stmt = stmt.where(Draft.center_id == center_id)
        return session.execute(stmt).scalar_one_or_none()

    def upsert(
        self,
        session: Session,
        *,
        user_id: int,
        patient_id: str,
        center_id: int | None,
        form_data: dict[str, Any],
    ) -> tuple[Draft, bool]:
        """Insert or overwrite the draft for (user, patient id, center).

        Returns the row and whether it was newly created.
        """
        payload = json.dumps(form_data, ensure_ascii=False, default=str)
        draft = self.find_by_key(session, user_id=user_id, patient_id=patient_id, center_id=center_id)
        created = draft is None
        if draft is None:
            draft = Draft(user_id=user_id, patient_id=patient_id, center_id=center_id)
            session.add(draft)
        draft.form_data_json = payload  # type: ignore[assignment]
        draft.updated_at = _utc_now()  # type: ignore[assignment]
        session.flush()
        return draft, created

    def list_drafts(self, session: Session, *, user_id: int | None = None) -> list[Draft]:
        stmt = select(Draft)
        if user_id is not None:
            stmt = stmt.where(Draft.user_id == user_id)
        stmt = stmt.order_by(Draft.updated_at.desc(), Draft.id.desc())
        return list(session.execute(stmt).scalars())

    def delete(self, session: Session, draft_id: int) -> None:
        session.execute(delete(Draft).where(Draft.id == draft_id))

    def count_in_center(self, session: Session, center_id: int) -> int:
        stmt = select(func.count(Draft.id)).where(Draft.center_id == center_id)
        return session.execute(stmt).scalar() or 0

    def to_dict(self, draft: Draft) -> dict[str, Any]:
        try:
            form_data = json.loads(str(draft.form_data_json or "{}"))
        except Exception:  # noqa: BLE001
            form_data = {}
        return {
            "id": draft.id,
            "user_id": draft.user_id,
            "center_id": draft.center_id,
            "patient_id": draft.patient_id,
            "updated_at": draft.updated_at,
            "form_data": form_data if isinstance(form_data, dict) else {},
        }
