from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, joinedload

from nidipo.infrastructure.db.models_sqlalchemy import Invitation


class InvitationRepository:
    def get_by_token(self, session: Session, token: str) -> Invitation | None:
        stmt = select(Invitation).options(joinedload(Invitation.center)).where(Invitation.token == token)
        return session.execute(stmt).scalar_one_or_none()

    def get_by_id(self, session: Session, invitation_id: int) -> Invitation | None:
        return session.get(Invitation, invitation_id)

    def list_invitations(self, session: Session) -> list[Invitation]:
        stmt = (
            select(Invitation)
            .options(joinedload(Invitation.center))
            .order_by(Invitation.created_at.desc(), Invitation.id.desc())
        )
        return list(session.execute(stmt).scalars())

    def create(
        self,
        session: Session,
        *,
        email: str,
        role: str,
        center_id: int | None,
        token: str,
        created_by: int | None,
    ) -> Invitation:
        invitation = Invitation(
            email=email.strip().lower(),
            role=role,
            center_id=center_id,
            token=token,
            created_by=created_by,
        )
        session.add(invitation)
        session.flush()
        return invitation

    def delete(self, session: Session, invitation_id: int) -> None:
        session.execute(delete(Invitation).where(Invitation.id == invitation_id))

    def count_in_center(self, session: Session, center_id: int) -> int:
        stmt = select(func.count(Invitation.id)).where(Invitation.center_id == center_id)
        return session.execute(stmt).scalar() or 0
