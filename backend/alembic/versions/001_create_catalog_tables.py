"""Create symptom catalog tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "symptoms",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
    )
    op.create_index("ix_symptoms_name", "symptoms", ["name"])

    op.create_table(
        "conditions",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("prevalence", sa.Float(), nullable=False, server_default="0.1"),
        sa.Column("is_rare", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint("prevalence >= 0 AND prevalence <= 1", name="ck_conditions_prevalence"),
    )
    op.create_index("ix_conditions_name", "conditions", ["name"])

    op.create_table(
        "condition_symptoms",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "condition_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("conditions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "symptom_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("symptoms.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("weight", sa.Float(), nullable=False, server_default="1.0"),
        sa.UniqueConstraint("condition_id", "symptom_id", name="uq_condition_symptom"),
        sa.CheckConstraint("weight > 0", name="ck_condition_symptoms_weight"),
    )
    op.create_index("ix_condition_symptoms_condition_id", "condition_symptoms", ["condition_id"])
    op.create_index("ix_condition_symptoms_symptom_id", "condition_symptoms", ["symptom_id"])

    op.create_table(
        "condition_aliases",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "condition_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("conditions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("alias", sa.String(255), nullable=False),
    )
    op.create_index("ix_condition_aliases_condition_id", "condition_aliases", ["condition_id"])
    op.create_index("ix_condition_aliases_alias", "condition_aliases", ["alias"])

    op.create_table(
        "drug_recommendations",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "condition_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("conditions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("drug_name", sa.String(200), nullable=False),
        sa.Column("dosage", sa.String(100), nullable=False),
        sa.Column("frequency", sa.String(100), nullable=True),
        sa.Column("duration", sa.String(50), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
    )
    op.create_index("ix_drug_recommendations_condition_id", "drug_recommendations", ["condition_id"])


def downgrade() -> None:
    op.drop_table("drug_recommendations")
    op.drop_table("condition_aliases")
    op.drop_table("condition_symptoms")
    op.drop_table("conditions")
    op.drop_table("symptoms")
