from __future__ import annotations

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, joinedload

from nidipo.infrastructure.db.models_sqlalchemy import Draft, User


class UserRepository:
    def get_by_email(self, session: Session, email: str) -> User | None:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return session.execute(stmt).scalar_one_or_none()

    def get_by_id(self, session: Session, user_id: int) -> User | None:
        stmt = select(User).options(joinedload(User.center)).where(User.id == user_id)
        return session.execute(stmt).scalar_one_or_none()

    def list_users(self, session: Session, query: str | None = None) -> list[User]:
        stmt = select(User).options(joinedload(User.center))
        if query:
            stmt = stmt.where(User.email.ilike(f"%{query}%") | User.name.ilike(f"%{query}%"))
        stmt = stmt.order_by(User.name.asc(), User.id.asc())
        return list(session.execute(stmt).scalars())

    def has_admin(self, session: Session) -> bool:
        stmt = select(User.id).where(User.role == "admin").limit(1)
        return session.execute(stmt).first() is not None

    def count_in_center(self, session: Session, center_id: int) -> int:
        stmt = select(func.count(User.id)).where(User.center_id == center_id)
        return session.execute(stmt).scalar() or 0

    def create(
        self,
        session: Session,
        *,
        email: str,
        name: str,
        password_hash: str,
        role: str,
        center_id: int | None,
    ) -> User:
        user = User(
            email=email.strip().lower(),
            name=name,
            password_hash=password_hash,
            role=role,
            center_id=center_id,
            is_active=True,
        )
        session.add(user)
        session.flush()  # populate id
        return user

    def set_password(self, session: Session, user_id: int, password_hash: str) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(password_hash=password_hash)
        )
        session.execute(stmt)

    def set_role_and_center(self, session: Session, user_id: int, role: str, center_id: int | None) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(role=role, center_id=center_id)
        )
        session.execute(stmt)

    def delete(self, session: Session, user_id: int) -> None:
        # Drafts are removed explicitly; SQLite only cascades with foreign_keys on.
        session.execute(delete(Draft).where(Draft.user_id == user_id))
        session.execute(delete(User).where(User.id == user_id))
