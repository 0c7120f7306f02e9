from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.sql import expression

naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    # avoid constraint_name token to allow unnamed CheckConstraint
    "ck": "ck_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=naming_convention)

ROLE_CHECK = "role in ('admin','researcher','data-entry')"


class Base(DeclarativeBase):
    metadata = metadata


def utc_now() -> datetime:
    return datetime.now(UTC)


class Center(Base):
    __tablename__ = "centers"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)
    location = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, server_default=expression.true())
    created_at = Column(DateTime, nullable=False, default=utc_now)

    center = relationship("Center")

    __table_args__ = (
        CheckConstraint(ROLE_CHECK, name="ck_users_role"),
    )


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False)
    role = Column(String, nullable=False)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=True)
    token = Column(String, nullable=False, unique=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    center = relationship("Center")

    __table_args__ = (
        CheckConstraint(ROLE_CHECK, name="ck_invitations_role"),
        Index("ix_invitations_email", "email"),
    )


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String, nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True)
    # Serial number typed by the operator; not unique across centers.
    patient_id = Column(String, nullable=False)
    age = Column(Integer, nullable=False)
    sex = Column(String, nullable=False)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)
    form_data_json = Column(Text, nullable=False, server_default=expression.literal("{}"))

    center = relationship("Center")

    __table_args__ = (
        Index("ix_patients_center_created_at", "center_id", "created_at"),
        Index("ix_patients_patient_id", "patient_id"),
    )


class Draft(Base):
    __tablename__ = "drafts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=True)
    patient_id = Column(String, nullable=False)
    form_data_json = Column(Text, nullable=False, server_default=expression.literal("{}"))
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("user_id", "patient_id", "center_id", name="uq_drafts_user_patient_center"),
        Index("ix_drafts_user_updated_at", "user_id", "updated_at"),
    )


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True)
    event_ts = Column(DateTime, nullable=False, default=utc_now)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)
    action = Column(String, nullable=False)
    payload_json = Column(Text, nullable=True)
