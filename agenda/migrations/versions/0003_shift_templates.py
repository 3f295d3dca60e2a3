"""Add shift templates

Revision ID: 0003_shift_templates
Revises: 0002_staff_scheduling
Create Date: 2026-10-18 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0003_shift_templates"
down_revision: Union[str, None] = "0002_staff_scheduling"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

shift_type = postgresql.ENUM(
    "MORNING",
    "AFTERNOON",
    "EVENING",
    "NIGHT",
    "FULL_DAY",
    "CUSTOM",
    name="shift_type",
    create_type=False,
)


def upgrade() -> None:
    op.create_table(
        "shift_templates",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("shift_type", shift_type, nullable=False, server_default=sa.text("'CUSTOM'")),
        sa.Column("start_time", sa.Time(timezone=False), nullable=False),
        sa.Column("end_time", sa.Time(timezone=False), nullable=False),
        sa.Column("break_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "days_of_week",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("color", sa.String(length=7), nullable=False, server_default=sa.text("'#2196F3'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["merchant_id"], ["merchants.id"], ondelete="CASCADE"),
        sa.CheckConstraint("break_minutes >= 0", name="ck_shift_templates_break_minutes"),
    )
    op.create_index("ix_shift_templates_merchant_id", "shift_templates", ["merchant_id"], unique=False)

    op.add_column("shifts", sa.Column("shift_template_id", sa.Integer(), nullable=True))
    op.create_foreign_key(
        "fk_shifts_shift_template_id",
        "shifts",
        "shift_templates",
        ["shift_template_id"],
        ["id"],
        ondelete="SET NULL",
    )


def downgrade() -> None:
    op.drop_constraint("fk_shifts_shift_template_id", "shifts", type_="foreignkey")
    op.drop_column("shifts", "shift_template_id")
    op.drop_index("ix_shift_templates_merchant_id", table_name="shift_templates")
    op.drop_table("shift_templates")
