"""Create diagnosis session, review and notification tables.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

SESSION_STATUSES = ("pending", "under_review", "approved", "modified", "rejected")
PRESCRIPTION_STATUSES = ("approved", "modified")
ROLES = ("patient", "doctor", "admin")


def upgrade() -> None:
    session_status = postgresql.ENUM(*SESSION_STATUSES, name="session_status", create_type=False)
    prescription_status = postgresql.ENUM(*PRESCRIPTION_STATUSES, name="prescription_status", create_type=False)
    user_role = postgresql.ENUM(*ROLES, name="user_role", create_type=False)

    session_status.create(op.get_bind(), checkfirst=True)
    prescription_status.create(op.get_bind(), checkfirst=True)
    user_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "diagnosis_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("patient_id", sa.String(255), nullable=False),
        sa.Column("symptoms", postgresql.JSONB(), nullable=False),
        sa.Column("conditions", postgresql.JSONB(), nullable=False),
        sa.Column("validation", postgresql.JSONB(), nullable=False),
        sa.Column("status", session_status, nullable=False, server_default="pending"),
        sa.Column("doctor_id", sa.String(255), nullable=True),
        sa.Column("doctor_notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_diagnosis_sessions_patient_id", "diagnosis_sessions", ["patient_id"])
    op.create_index("ix_diagnosis_sessions_status", "diagnosis_sessions", ["status"])
    op.create_index("ix_diagnosis_sessions_doctor_id", "diagnosis_sessions", ["doctor_id"])

    op.create_table(
        "prescriptions",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "diagnosis_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("diagnosis_sessions.id"),
            nullable=False,
        ),
        sa.Column("doctor_id", sa.String(255), nullable=False),
        sa.Column("patient_id", sa.String(255), nullable=False),
        sa.Column("medications", postgresql.JSONB(), nullable=False),
        sa.Column("diagnosis_text", sa.String(500), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("status", prescription_status, nullable=False),
    )
    op.create_index("ix_prescriptions_diagnosis_id", "prescriptions", ["diagnosis_id"])
    op.create_index("ix_prescriptions_patient_id", "prescriptions", ["patient_id"])

    op.create_table(
        "audit_log_entries",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "diagnosis_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("diagnosis_sessions.id"),
            nullable=False,
        ),
        sa.Column("actor_id", sa.String(255), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("details", postgresql.JSONB(), nullable=False),
    )
    op.create_index("ix_audit_log_entries_diagnosis_id", "audit_log_entries", ["diagnosis_id"])
    op.create_index("ix_audit_log_entries_action", "audit_log_entries", ["action"])

    op.create_table(
        "emergency_flags",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("patient_id", sa.String(255), nullable=False),
        sa.Column("raw_text", sa.Text(), nullable=False),
        sa.Column("flags", postgresql.JSONB(), nullable=False),
        sa.Column("severity", sa.Integer(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
    )
    op.create_index("ix_emergency_flags_patient_id", "emergency_flags", ["patient_id"])

    op.create_table(
        "confidence_logs",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "diagnosis_session_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("diagnosis_sessions.id"),
            nullable=False,
        ),
        sa.Column("conditions_analyzed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("highest_confidence", sa.Float(), nullable=False),
        sa.Column("average_confidence", sa.Float(), nullable=False),
        sa.Column("confidence_threshold", sa.Float(), nullable=False),
        sa.Column("passed_threshold", sa.Boolean(), nullable=False),
        sa.Column("recommended_action", sa.String(50), nullable=False),
        sa.Column("override_reason", sa.String(255), nullable=True),
    )
    op.create_index("ix_confidence_logs_diagnosis_session_id", "confidence_logs", ["diagnosis_session_id"])

    op.create_table(
        "user_roles",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False, unique=True),
        sa.Column("role", user_role, nullable=False, server_default="patient"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("diagnosis_session_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_diagnosis_session_id", "notifications", ["diagnosis_session_id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("user_roles")
    op.drop_table("confidence_logs")
    op.drop_table("emergency_flags")
    op.drop_table("audit_log_entries")
    op.drop_table("prescriptions")
    op.drop_table("diagnosis_sessions")

    sa.Enum(name="user_role").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="prescription_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="session_status").drop(op.get_bind(), checkfirst=True)
