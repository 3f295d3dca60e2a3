"""Initial availability and booking schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-12 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

booking_mode = postgresql.ENUM(
    "TIME_SLOT",
    "TIME_RANGE",
    "DAY_ONLY",
    name="booking_mode",
    create_type=False,
)
booking_status = postgresql.ENUM(
    "PENDING",
    "CONFIRMED",
    "CANCELLED",
    "COMPLETED",
    "NO_SHOW",
    name="booking_status",
    create_type=False,
)
audit_actor_type = postgresql.ENUM(
    "MERCHANT",
    "EMPLOYEE",
    "SYSTEM",
    name="audit_actor_type",
    create_type=False,
)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _merchant_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["merchant_id"], ["merchants.id"], ondelete="CASCADE")


def upgrade() -> None:
    bind = op.get_bind()
    booking_mode.create(bind, checkfirst=True)
    booking_status.create(bind, checkfirst=True)
    audit_actor_type.create(bind, checkfirst=True)

    op.create_table(
        "merchants",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
    )

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("booking_mode", booking_mode, nullable=False, server_default=sa.text("'TIME_SLOT'")),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("max_capacity_per_slot", sa.Integer(), nullable=True),
        sa.Column("configuration", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        _merchant_fk(),
    )
    op.create_index("ix_services_merchant_id", "services", ["merchant_id"], unique=False)

    op.create_table(
        "business_hours",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("open_time", sa.Time(timezone=False), nullable=True),
        sa.Column("close_time", sa.Time(timezone=False), nullable=True),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("max_capacity", sa.Integer(), nullable=True),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("label", sa.String(length=100), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="CASCADE"),
        sa.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_business_hours_day_of_week"),
    )
    op.create_index("ix_business_hours_merchant_id", "business_hours", ["merchant_id"], unique=False)
    op.create_index(
        "ix_business_hours_service_day",
        "business_hours",
        ["service_id", "day_of_week"],
        unique=False,
    )

    op.create_table(
        "business_hours_exceptions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("exception_date", sa.Date(), nullable=False),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("max_capacity", sa.Integer(), nullable=True),
        sa.Column("reason", sa.String(length=500), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("service_id", "exception_date", name="uq_business_hours_exceptions_service_date"),
    )
    op.create_index(
        "ix_business_hours_exceptions_merchant_id",
        "business_hours_exceptions",
        ["merchant_id"],
        unique=False,
    )

    op.create_table(
        "business_hours_exception_windows",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("exception_id", sa.Integer(), nullable=False),
        sa.Column("open_time", sa.Time(timezone=False), nullable=False),
        sa.Column("close_time", sa.Time(timezone=False), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=True),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("label", sa.String(length=100), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["exception_id"], ["business_hours_exceptions.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_business_hours_exception_windows_exception_id",
        "business_hours_exception_windows",
        ["exception_id"],
        unique=False,
    )

    op.create_table(
        "closure_periods",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False, server_default=sa.text("''")),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _merchant_fk(),
        sa.CheckConstraint("end_date >= start_date", name="ck_closure_periods_range"),
    )
    op.create_index(
        "ix_closure_periods_merchant_range",
        "closure_periods",
        ["merchant_id", "start_date", "end_date"],
        unique=False,
    )

    op.create_table(
        "slot_capacity_overrides",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("slot_time", sa.Time(timezone=False), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=True),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "service_id",
            "slot_time",
            "day_of_week",
            name="uq_slot_capacity_overrides_service_slot_day",
        ),
    )
    op.create_index(
        "ix_slot_capacity_overrides_merchant_id",
        "slot_capacity_overrides",
        ["merchant_id"],
        unique=False,
    )
    op.create_index(
        "ix_slot_capacity_overrides_service_id",
        "slot_capacity_overrides",
        ["service_id"],
        unique=False,
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("customer_ref", sa.String(length=255), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(timezone=False), nullable=True),
        sa.Column("end_time", sa.Time(timezone=False), nullable=True),
        sa.Column("party_size", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("status", booking_status, nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        _merchant_fk(),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="CASCADE"),
        sa.CheckConstraint("party_size >= 1", name="ck_bookings_party_size"),
    )
    op.create_index("ix_bookings_merchant_id", "bookings", ["merchant_id"], unique=False)
    op.create_index(
        "ix_bookings_service_date_status",
        "bookings",
        ["service_id", "booking_date", "status"],
        unique=False,
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "ts_utc",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("merchant_id", sa.Integer(), nullable=True),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.create_index("ix_audit_logs_merchant_id", "audit_logs", ["merchant_id"], unique=False)
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_index("ix_audit_logs_merchant_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_bookings_service_date_status", table_name="bookings")
    op.drop_index("ix_bookings_merchant_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_slot_capacity_overrides_service_id", table_name="slot_capacity_overrides")
    op.drop_index("ix_slot_capacity_overrides_merchant_id", table_name="slot_capacity_overrides")
    op.drop_table("slot_capacity_overrides")

    op.drop_index("ix_closure_periods_merchant_range", table_name="closure_periods")
    op.drop_table("closure_periods")

    op.drop_index(
        "ix_business_hours_exception_windows_exception_id",
        table_name="business_hours_exception_windows",
    )
    op.drop_table("business_hours_exception_windows")

    op.drop_index("ix_business_hours_exceptions_merchant_id", table_name="business_hours_exceptions")
    op.drop_table("business_hours_exceptions")

    op.drop_index("ix_business_hours_service_day", table_name="business_hours")
    op.drop_index("ix_business_hours_merchant_id", table_name="business_hours")
    op.drop_table("business_hours")

    op.drop_index("ix_services_merchant_id", table_name="services")
    op.drop_table("services")
    op.drop_table("merchants")

    bind = op.get_bind()
    audit_actor_type.drop(bind, checkfirst=True)
    booking_status.drop(bind, checkfirst=True)
    booking_mode.drop(bind, checkfirst=True)
