"""Centers, users, invitations, password resets, patients, drafts and audit log"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

ROLE_CHECK = "role in ('admin','researcher','data-entry')"


def upgrade() -> None:
    op.create_table(
        "centers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.UniqueConstraint("name", name="uq_centers_name"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("center_id", sa.Integer(), sa.ForeignKey("centers.id", name="fk_users_center_id_centers"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.CheckConstraint(ROLE_CHECK, name="ck_users_role"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "invitations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column(
            "center_id",
            sa.Integer(),
            sa.ForeignKey("centers.id", name="fk_invitations_center_id_centers"),
            nullable=True,
        ),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column(
            "created_by",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_invitations_created_by_users", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.CheckConstraint(ROLE_CHECK, name="ck_invitations_role"),
        sa.UniqueConstraint("token", name="uq_invitations_token"),
    )
    op.create_index("ix_invitations_email", "invitations", ["email"], unique=False)

    op.create_table(
        "password_resets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_password_resets_user_id_users", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.UniqueConstraint("token", name="uq_password_resets_token"),
    )

    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("patient_id", sa.String(), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("sex", sa.String(), nullable=False),
        sa.Column(
            "center_id",
            sa.Integer(),
            sa.ForeignKey("centers.id", name="fk_patients_center_id_centers"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column("form_data_json", sa.Text(), nullable=False, server_default=sa.text("'{}'")),
    )
    op.create_index("ix_patients_center_created_at", "patients", ["center_id", "created_at"], unique=False)
    op.create_index("ix_patients_patient_id", "patients", ["patient_id"], unique=False)

    op.create_table(
        "drafts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_drafts_user_id_users", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "center_id",
            sa.Integer(),
            sa.ForeignKey("centers.id", name="fk_drafts_center_id_centers"),
            nullable=True,
        ),
        sa.Column("patient_id", sa.String(), nullable=False),
        sa.Column("form_data_json", sa.Text(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.UniqueConstraint("user_id", "patient_id", "center_id", name="uq_drafts_user_patient_center"),
    )
    op.create_index("ix_drafts_user_updated_at", "drafts", ["user_id", "updated_at"], unique=False)

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_ts", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_audit_log_user_id_users", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=True),
    )
    op.create_index("ix_audit_log_event_ts", "audit_log", ["event_ts"], unique=False)
    op.create_index("ix_audit_log_entity_type_entity_id", "audit_log", ["entity_type", "entity_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_log_entity_type_entity_id", table_name="audit_log")
    op.drop_index("ix_audit_log_event_ts", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_drafts_user_updated_at", table_name="drafts")
    op.drop_table("drafts")
    op.drop_index("ix_patients_patient_id", table_name="patients")
    op.drop_index("ix_patients_center_created_at", table_name="patients")
    op.drop_table("patients")
    op.drop_table("password_resets")
    op.drop_index("ix_invitations_email", table_name="invitations")
    op.drop_table("invitations")
    op.drop_table("users")
    op.drop_table("centers")
