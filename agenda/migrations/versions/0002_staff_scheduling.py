"""Add employees, shifts and timekeeping tables

Revision ID: 0002_staff_scheduling
Revises: 0001_initial
Create Date: 2026-10-13 00:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0002_staff_scheduling"
down_revision: Union[str, None] = "0001_initial"
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
validation_status = postgresql.ENUM(
    "PENDING",
    "AUTO_APPROVED",
    "REQUIRES_REVIEW",
    "MANUALLY_APPROVED",
    "SELF_CORRECTED",
    name="validation_status",
    create_type=False,
)
leave_type = postgresql.ENUM(
    "ANNUAL",
    "REDUCED_HOURS",
    "PAID_PERMIT",
    "SICK",
    "HOLIDAY_COMPENSATION",
    "WELFARE",
    "PERMIT",
    "OTHER",
    name="leave_type",
    create_type=False,
)
leave_status = postgresql.ENUM(
    "PENDING",
    "APPROVED",
    "REJECTED",
    "CANCELLED",
    name="leave_status",
    create_type=False,
)
overtime_type = postgresql.ENUM(
    "PAID",
    "BANKED_HOURS",
    "TIME_RECOVERY",
    "VOLUNTARY",
    "PENDING",
    name="overtime_type",
    create_type=False,
)
anomaly_type = postgresql.ENUM(
    "LATE_CHECK_IN",
    "EARLY_CHECK_IN",
    "LATE_CHECK_OUT",
    "EARLY_CHECK_OUT",
    "MISSING_CHECK_IN",
    "MISSING_CHECK_OUT",
    "EXTENDED_BREAK",
    name="anomaly_type",
    create_type=False,
)
anomaly_reason = postgresql.ENUM(
    "TRAFFIC",
    "AUTHORIZED_LEAVE",
    "TIME_RECOVERY",
    "PERSONAL_EMERGENCY",
    "FORGOTTEN",
    "TECHNICAL_ISSUE",
    "SMART_WORKING",
    "OTHER",
    name="anomaly_reason",
    create_type=False,
)
correction_field = postgresql.ENUM(
    "CHECK_IN",
    "CHECK_OUT",
    "BREAK_MINUTES",
    name="correction_field",
    create_type=False,
)
correction_status = postgresql.ENUM(
    "AUTO_APPROVED",
    "PENDING",
    "APPROVED",
    "REJECTED",
    name="correction_status",
    create_type=False,
)
swap_status = postgresql.ENUM(
    "PENDING",
    "APPROVED",
    "REJECTED",
    "CANCELLED",
    name="swap_status",
    create_type=False,
)

ENUMS = (
    shift_type,
    validation_status,
    leave_type,
    leave_status,
    overtime_type,
    anomaly_type,
    anomaly_reason,
    correction_field,
    correction_status,
    swap_status,
)


def _timestamp(name: str, *, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _merchant_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["merchant_id"], ["merchants.id"], ondelete="CASCADE")


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        _merchant_fk(),
    )
    op.create_index("ix_employees_merchant_id", "employees", ["merchant_id"], unique=False)

    op.create_table(
        "shifts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("shift_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(timezone=False), nullable=False),
        sa.Column("end_time", sa.Time(timezone=False), nullable=False),
        sa.Column("break_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("shift_type", shift_type, nullable=False, server_default=sa.text("'CUSTOM'")),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("check_in_ts", nullable=True),
        _timestamp("check_out_ts", nullable=True),
        sa.Column("actual_break_minutes", sa.Integer(), nullable=True),
        sa.Column(
            "validation_status",
            validation_status,
            nullable=False,
            server_default=sa.text("'PENDING'"),
        ),
        _timestamp("validated_at", nullable=True),
        sa.Column("validated_by", sa.String(length=255), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.CheckConstraint("break_minutes >= 0", name="ck_shifts_break_minutes"),
    )
    op.create_index("ix_shifts_merchant_id", "shifts", ["merchant_id"], unique=False)
    op.create_index("ix_shifts_employee_date", "shifts", ["employee_id", "shift_date"], unique=False)

    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("leave_type", leave_type, nullable=False),
        sa.Column("status", leave_status, nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("note", sa.String(length=1000), nullable=True),
        _timestamp("created_at"),
        _timestamp("decided_at", nullable=True),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_leave_requests_merchant_id", "leave_requests", ["merchant_id"], unique=False)
    op.create_index(
        "ix_leave_requests_employee_range",
        "leave_requests",
        ["employee_id", "start_date", "end_date"],
        unique=False,
    )

    op.create_table(
        "working_hours_limits",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("max_minutes_per_day", sa.Integer(), nullable=True),
        sa.Column("max_minutes_per_week", sa.Integer(), nullable=True),
        sa.Column("max_minutes_per_month", sa.Integer(), nullable=True),
        sa.Column("min_minutes_per_week", sa.Integer(), nullable=True),
        sa.Column("min_minutes_per_month", sa.Integer(), nullable=True),
        sa.Column("allow_overtime", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("max_overtime_minutes_per_week", sa.Integer(), nullable=True),
        sa.Column("max_overtime_minutes_per_month", sa.Integer(), nullable=True),
        sa.Column("valid_from", sa.Date(), nullable=False),
        sa.Column("valid_to", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_working_hours_limits_merchant_id", "working_hours_limits", ["merchant_id"], unique=False)
    op.create_index("ix_working_hours_limits_employee_id", "working_hours_limits", ["employee_id"], unique=False)

    op.create_table(
        "overtime_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("shift_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("overtime_date", sa.Date(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("overtime_type", overtime_type, nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("is_auto_detected", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        _timestamp("approved_at", nullable=True),
        sa.Column("employee_notes", sa.String(length=1000), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_overtime_records_merchant_id", "overtime_records", ["merchant_id"], unique=False)
    op.create_index("ix_overtime_records_shift_id", "overtime_records", ["shift_id"], unique=False)

    op.create_table(
        "shift_anomalies",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("shift_id", sa.Integer(), nullable=False),
        sa.Column("anomaly_type", anomaly_type, nullable=False),
        sa.Column("severity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("deviation_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("requires_merchant_review", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("employee_reason", anomaly_reason, nullable=True),
        sa.Column("employee_notes", sa.String(length=1000), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("detected_at"),
        _timestamp("resolved_at", nullable=True),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_shift_anomalies_merchant_id", "shift_anomalies", ["merchant_id"], unique=False)
    op.create_index("ix_shift_anomalies_shift_id", "shift_anomalies", ["shift_id"], unique=False)

    op.create_table(
        "shift_corrections",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("shift_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("corrected_field", correction_field, nullable=False),
        sa.Column("original_value", sa.String(length=64), nullable=True),
        sa.Column("new_value", sa.String(length=64), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column("original_punch_ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_within_window", sa.Boolean(), nullable=False),
        sa.Column("status", correction_status, nullable=False),
        _timestamp("decided_at", nullable=True),
        sa.Column("decided_by", sa.String(length=255), nullable=True),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_shift_corrections_merchant_id", "shift_corrections", ["merchant_id"], unique=False)
    op.create_index("ix_shift_corrections_shift_id", "shift_corrections", ["shift_id"], unique=False)

    op.create_table(
        "shift_swap_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("shift_id", sa.Integer(), nullable=False),
        sa.Column("requesting_employee_id", sa.Integer(), nullable=False),
        sa.Column("target_employee_id", sa.Integer(), nullable=True),
        sa.Column("offered_shift_id", sa.Integer(), nullable=True),
        sa.Column("status", swap_status, nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("message", sa.String(length=1000), nullable=True),
        sa.Column("response_message", sa.String(length=1000), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["requesting_employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["target_employee_id"], ["employees.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["offered_shift_id"], ["shifts.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_shift_swap_requests_merchant_id", "shift_swap_requests", ["merchant_id"], unique=False)
    op.create_index(
        "ix_shift_swap_requests_requesting_employee_id",
        "shift_swap_requests",
        ["requesting_employee_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_shift_swap_requests_requesting_employee_id", table_name="shift_swap_requests")
    op.drop_index("ix_shift_swap_requests_merchant_id", table_name="shift_swap_requests")
    op.drop_table("shift_swap_requests")

    op.drop_index("ix_shift_corrections_shift_id", table_name="shift_corrections")
    op.drop_index("ix_shift_corrections_merchant_id", table_name="shift_corrections")
    op.drop_table("shift_corrections")

    op.drop_index("ix_shift_anomalies_shift_id", table_name="shift_anomalies")
    op.drop_index("ix_shift_anomalies_merchant_id", table_name="shift_anomalies")
    op.drop_table("shift_anomalies")

    op.drop_index("ix_overtime_records_shift_id", table_name="overtime_records")
    op.drop_index("ix_overtime_records_merchant_id", table_name="overtime_records")
    op.drop_table("overtime_records")

    op.drop_index("ix_working_hours_limits_employee_id", table_name="working_hours_limits")
    op.drop_index("ix_working_hours_limits_merchant_id", table_name="working_hours_limits")
    op.drop_table("working_hours_limits")

    op.drop_index("ix_leave_requests_employee_range", table_name="leave_requests")
    op.drop_index("ix_leave_requests_merchant_id", table_name="leave_requests")
    op.drop_table("leave_requests")

    op.drop_index("ix_shifts_employee_date", table_name="shifts")
    op.drop_index("ix_shifts_merchant_id", table_name="shifts")
    op.drop_table("shifts")

    op.drop_index("ix_employees_merchant_id", table_name="employees")
    op.drop_table("employees")

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
