from __future__ import annotations

import enum
from datetime import date, datetime, time, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agenda.db import Base

JSONPayload = JSON().with_variant(JSONB(), "postgresql")


class BookingMode(str, enum.Enum):
    TIME_SLOT = "TIME_SLOT"
    TIME_RANGE = "TIME_RANGE"
    DAY_ONLY = "DAY_ONLY"


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


class ShiftType(str, enum.Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    EVENING = "EVENING"
    NIGHT = "NIGHT"
    FULL_DAY = "FULL_DAY"
    CUSTOM = "CUSTOM"


class ValidationStatus(str, enum.Enum):
    PENDING = "PENDING"
    AUTO_APPROVED = "AUTO_APPROVED"
    REQUIRES_REVIEW = "REQUIRES_REVIEW"
    MANUALLY_APPROVED = "MANUALLY_APPROVED"
    SELF_CORRECTED = "SELF_CORRECTED"


class LeaveType(str, enum.Enum):
    ANNUAL = "ANNUAL"
    REDUCED_HOURS = "REDUCED_HOURS"
    PAID_PERMIT = "PAID_PERMIT"
    SICK = "SICK"
    HOLIDAY_COMPENSATION = "HOLIDAY_COMPENSATION"
    WELFARE = "WELFARE"
    PERMIT = "PERMIT"
    OTHER = "OTHER"


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class OvertimeType(str, enum.Enum):
    PAID = "PAID"
    BANKED_HOURS = "BANKED_HOURS"
    TIME_RECOVERY = "TIME_RECOVERY"
    VOLUNTARY = "VOLUNTARY"
    PENDING = "PENDING"


class AnomalyType(str, enum.Enum):
    LATE_CHECK_IN = "LATE_CHECK_IN"
    EARLY_CHECK_IN = "EARLY_CHECK_IN"
    LATE_CHECK_OUT = "LATE_CHECK_OUT"
    EARLY_CHECK_OUT = "EARLY_CHECK_OUT"
    MISSING_CHECK_IN = "MISSING_CHECK_IN"
    MISSING_CHECK_OUT = "MISSING_CHECK_OUT"
    EXTENDED_BREAK = "EXTENDED_BREAK"


class AnomalyReason(str, enum.Enum):
    TRAFFIC = "TRAFFIC"
    AUTHORIZED_LEAVE = "AUTHORIZED_LEAVE"
    TIME_RECOVERY = "TIME_RECOVERY"
    PERSONAL_EMERGENCY = "PERSONAL_EMERGENCY"
    FORGOTTEN = "FORGOTTEN"
    TECHNICAL_ISSUE = "TECHNICAL_ISSUE"
    SMART_WORKING = "SMART_WORKING"
    OTHER = "OTHER"


class CorrectionField(str, enum.Enum):
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"
    BREAK_MINUTES = "BREAK_MINUTES"


class CorrectionStatus(str, enum.Enum):
    AUTO_APPROVED = "AUTO_APPROVED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SwapStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class AuditActorType(str, enum.Enum):
    MERCHANT = "MERCHANT"
    EMPLOYEE = "EMPLOYEE"
    SYSTEM = "SYSTEM"


def _created_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )


def _updated_at() -> Mapped[datetime | None]:
    return mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=lambda: datetime.now(timezone.utc),
    )


class Merchant(Base):
    __tablename__ = "merchants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = _created_at()


class Service(Base):
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    booking_mode: Mapped[BookingMode] = mapped_column(
        Enum(BookingMode, name="booking_mode"),
        nullable=False,
        default=BookingMode.TIME_SLOT,
    )
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    slot_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_capacity_per_slot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    configuration: Mapped[dict[str, Any] | None] = mapped_column(JSONPayload, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = _created_at()


class BusinessHours(Base):
    __tablename__ = "business_hours"
    __table_args__ = (Index("ix_business_hours_service_day", "service_id", "day_of_week"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[int] = mapped_column(ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    open_time: Mapped[time | None] = mapped_column(Time(timezone=False), nullable=True)
    close_time: Mapped[time | None] = mapped_column(Time(timezone=False), nullable=True)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    max_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    slot_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    label: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class BusinessHoursException(Base):
    __tablename__ = "business_hours_exceptions"
    __table_args__ = (
        UniqueConstraint("service_id", "exception_date", name="uq_business_hours_exceptions_service_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[int] = mapped_column(ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    exception_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    max_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()

    windows: Mapped[list[BusinessHoursExceptionWindow]] = relationship(
        back_populates="exception",
        cascade="all, delete-orphan",
        order_by="BusinessHoursExceptionWindow.sort_order",
    )


class BusinessHoursExceptionWindow(Base):
    __tablename__ = "business_hours_exception_windows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    exception_id: Mapped[int] = mapped_column(
        ForeignKey("business_hours_exceptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    open_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    close_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    max_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    slot_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    label: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))

    exception: Mapped[BusinessHoursException] = relationship(back_populates="windows")


class ClosurePeriod(Base):
    __tablename__ = "closure_periods"
    __table_args__ = (Index("ix_closure_periods_merchant_range", "merchant_id", "start_date", "end_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class SlotCapacityOverride(Base):
    __tablename__ = "slot_capacity_overrides"
    __table_args__ = (
        UniqueConstraint(
            "service_id",
            "slot_time",
            "day_of_week",
            name="uq_slot_capacity_overrides_service_slot_day",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[int] = mapped_column(
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    slot_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    day_of_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (Index("ix_bookings_service_date_status", "service_id", "booking_date", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[int] = mapped_column(ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    customer_ref: Mapped[str] = mapped_column(String(255), nullable=False)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time(timezone=False), nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time(timezone=False), nullable=True)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = _created_at()


class ShiftTemplate(Base):
    __tablename__ = "shift_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    shift_type: Mapped[ShiftType] = mapped_column(
        Enum(ShiftType, name="shift_type"),
        nullable=False,
        default=ShiftType.CUSTOM,
    )
    start_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    end_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    # Weekdays (Monday = 0) the template applies to; empty means every day.
    days_of_week: Mapped[list[int]] = mapped_column(JSONPayload, nullable=False, default=list)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#2196F3", server_default=text("'#2196F3'"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class Shift(Base):
    __tablename__ = "shifts"
    __table_args__ = (Index("ix_shifts_employee_date", "employee_id", "shift_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    shift_template_id: Mapped[int | None] = mapped_column(
        ForeignKey("shift_templates.id", ondelete="SET NULL"),
        nullable=True,
    )
    start_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    end_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    shift_type: Mapped[ShiftType] = mapped_column(
        Enum(ShiftType, name="shift_type"),
        nullable=False,
        default=ShiftType.CUSTOM,
    )
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    check_in_ts: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out_ts: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_break_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    validation_status: Mapped[ValidationStatus] = mapped_column(
        Enum(ValidationStatus, name="validation_status"),
        nullable=False,
        default=ValidationStatus.PENDING,
    )
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    validated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (Index("ix_leave_requests_employee_range", "employee_id", "start_date", "end_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    leave_type: Mapped[LeaveType] = mapped_column(Enum(LeaveType, name="leave_type"), nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.PENDING,
    )
    note: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class WorkingHoursLimit(Base):
    __tablename__ = "working_hours_limits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    max_minutes_per_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_minutes_per_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_minutes_per_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_minutes_per_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_minutes_per_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    allow_overtime: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    max_overtime_minutes_per_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_overtime_minutes_per_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class OvertimeRecord(Base):
    __tablename__ = "overtime_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shift_id: Mapped[int] = mapped_column(ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    overtime_date: Mapped[date] = mapped_column(Date, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    overtime_type: Mapped[OvertimeType] = mapped_column(
        Enum(OvertimeType, name="overtime_type"),
        nullable=False,
        default=OvertimeType.PENDING,
    )
    is_auto_detected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    employee_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class ShiftAnomaly(Base):
    __tablename__ = "shift_anomalies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shift_id: Mapped[int] = mapped_column(ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False, index=True)
    anomaly_type: Mapped[AnomalyType] = mapped_column(Enum(AnomalyType, name="anomaly_type"), nullable=False)
    severity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))
    deviation_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    requires_merchant_review: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    employee_reason: Mapped[AnomalyReason | None] = mapped_column(
        Enum(AnomalyReason, name="anomaly_reason"),
        nullable=True,
    )
    employee_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    detected_at: Mapped[datetime] = _created_at()
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ShiftCorrection(Base):
    __tablename__ = "shift_corrections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shift_id: Mapped[int] = mapped_column(ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    corrected_field: Mapped[CorrectionField] = mapped_column(
        Enum(CorrectionField, name="correction_field"),
        nullable=False,
    )
    original_value: Mapped[str | None] = mapped_column(String(64), nullable=True)
    new_value: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    original_punch_ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_within_window: Mapped[bool] = mapped_column(Boolean, nullable=False)
    status: Mapped[CorrectionStatus] = mapped_column(
        Enum(CorrectionStatus, name="correction_status"),
        nullable=False,
    )
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_by: Mapped[str | None] = mapped_column(String(255), nullable=True)


class ShiftSwapRequest(Base):
    __tablename__ = "shift_swap_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    merchant_id: Mapped[int] = mapped_column(
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shift_id: Mapped[int] = mapped_column(ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False)
    requesting_employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_employee_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    offered_shift_id: Mapped[int | None] = mapped_column(
        ForeignKey("shifts.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[SwapStatus] = mapped_column(
        Enum(SwapStatus, name="swap_status"),
        nullable=False,
        default=SwapStatus.PENDING,
    )
    message: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    response_message: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    merchant_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSONPayload, nullable=False, default=dict)
