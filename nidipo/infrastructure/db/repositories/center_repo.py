from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from nidipo.infrastructure.db.models_sqlalchemy import Center


class CenterRepository:
    def get_by_id(self, session: Session, center_id: int) -> Center | None:
        return session.get(Center, center_id)

    def get_by_name(self, session: Session, name: str) -> Center | None:
        stmt = select(Center).where(func.lower(Center.name) == name.strip().lower())
        return session.execute(stmt).scalar_one_or_none()

    def list_centers(self, session: Session) -> list[Center]:
        stmt = select(Center).order_by(Center.name.asc())
        return list(session.execute(stmt).scalars())

    def create(self, session: Session, *, name: str, location: str) -> Center:
        center = Center(name=name, location=location)
        session.add(center)
        session.flush()
        return center

    def update(self, session: Session, center: Center, *, name: str, location: str) -> Center:
        center.name = name  # type: ignore[assignment]
        center.location = location  # type: ignore[assignment]
        session.flush()
        return center

    def delete(self, session: Session, center_id: int) -> None:
        session.execute(delete(Center).where(Center.id == center_id))
