from datetime import date, datetime, time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agenda.models import (
    AnomalyReason,
    AnomalyType,
    AuditActorType,
    BookingStatus,
    CorrectionField,
    CorrectionStatus,
    LeaveStatus,
    LeaveType,
    OvertimeType,
    ShiftType,
    SwapStatus,
    ValidationStatus,
)


class WindowRead(BaseModel):
    open_time: time
    close_time: time
    max_capacity: int | None = None
    slot_duration_minutes: int | None = None
    label: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ResolvedDayRead(BaseModel):
    service_id: int
    day: date
    is_closed: bool
    source: Literal["CLOSURE", "EXCEPTION", "RECURRING", "NONE"]
    reason: str | None = None
    windows: list[WindowRead]


class CapacityRead(BaseModel):
    unbounded: bool
    remaining: int | None = None


class SlotRead(BaseModel):
    start_time: time
    end_time: time
    capacity: CapacityRead


class SlotListResponse(BaseModel):
    service_id: int
    day: date
    slots: list[SlotRead]


class AvailabilityCheckResponse(BaseModel):
    service_id: int
    day: date
    available: bool
    reason: str | None = None
    remaining: CapacityRead | None = None


class BookingCreateRequest(BaseModel):
    service_id: int = Field(ge=1)
    customer_ref: str = Field(min_length=1, max_length=255)
    booking_date: date
    start_time: time | None = None
    end_time: time | None = None
    party_size: int = Field(default=1, ge=1, le=500)
    notes: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _validate_range(self) -> "BookingCreateRequest":
        if self.end_time is not None and self.start_time is None:
            raise ValueError("end_time requires start_time.")
        if self.start_time is not None and self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time.")
        return self


class BookingStatusUpdateRequest(BaseModel):
    status: Literal["CONFIRMED", "CANCELLED", "COMPLETED", "NO_SHOW"]


class BookingRead(BaseModel):
    id: int
    service_id: int
    customer_ref: str
    booking_date: date
    start_time: time | None
    end_time: time | None
    party_size: int
    status: BookingStatus
    notes: str | None
    created_at: datetime
    confirmed_at: datetime | None
    cancelled_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class ShiftCreateRequest(BaseModel):
    employee_id: int = Field(ge=1)
    shift_date: date
    start_time: time
    end_time: time
    break_minutes: int = Field(default=0, ge=0, le=720)
    shift_type: ShiftType = ShiftType.CUSTOM
    notes: str | None = Field(default=None, max_length=1000)
    block_on_warnings: bool = False
    force: bool = False


class ShiftUpdateRequest(BaseModel):
    shift_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    break_minutes: int | None = Field(default=None, ge=0, le=720)
    shift_type: ShiftType | None = None
    notes: str | None = Field(default=None, max_length=1000)
    block_on_warnings: bool = False
    force: bool = False


class ShiftValidateRequest(BaseModel):
    employee_id: int = Field(ge=1)
    shift_date: date
    start_time: time
    end_time: time
    break_minutes: int = Field(default=0, ge=0, le=720)
    exclude_shift_id: int | None = Field(default=None, ge=1)


class ConflictRead(BaseModel):
    kind: Literal["OVERLAP", "LEAVE", "LIMIT_EXCEEDED", "OVERTIME"]
    severity: Literal["HARD", "SOFT"]
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ValidationResultRead(BaseModel):
    ok: bool
    conflicts: list[ConflictRead]


class ShiftRead(BaseModel):
    id: int
    employee_id: int
    shift_date: date
    start_time: time
    end_time: time
    break_minutes: int
    shift_type: ShiftType
    shift_template_id: int | None = None
    notes: str | None
    is_active: bool
    check_in_ts: datetime | None
    check_out_ts: datetime | None
    actual_break_minutes: int | None
    validation_status: ValidationStatus

    model_config = ConfigDict(from_attributes=True)


class ShiftWriteResponse(BaseModel):
    shift: ShiftRead
    warnings: list[ConflictRead]


class ShiftTemplateUpsert(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    shift_type: ShiftType = ShiftType.CUSTOM
    start_time: time
    end_time: time
    break_minutes: int = Field(default=0, ge=0, le=720)
    days_of_week: list[int] = Field(default_factory=list)
    color: str = Field(default="#2196F3", pattern=r"^#[0-9A-Fa-f]{6}$")
    is_active: bool = True

    @model_validator(mode="after")
    def _validate_template(self) -> "ShiftTemplateUpsert":
        if any(day < 0 or day > 6 for day in self.days_of_week):
            raise ValueError("days_of_week values must be between 0 (Monday) and 6 (Sunday)")
        if self.start_time == self.end_time:
            raise ValueError("start_time and end_time must differ")
        start_minute = self.start_time.hour * 60 + self.start_time.minute
        end_minute = self.end_time.hour * 60 + self.end_time.minute
        if end_minute <= start_minute:
            end_minute += 24 * 60
        if self.break_minutes >= end_minute - start_minute:
            raise ValueError("break_minutes must be shorter than the shift")
        return self


class ShiftTemplateRead(BaseModel):
    id: int
    name: str
    description: str | None
    shift_type: ShiftType
    start_time: time
    end_time: time
    break_minutes: int
    days_of_week: list[int]
    color: str
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TemplateApplyRequest(BaseModel):
    employee_ids: list[int] = Field(min_length=1, max_length=200)
    start_date: date
    end_date: date
    days_of_week: list[int] | None = None
    skip_conflicts: bool = False
    block_on_warnings: bool = False
    force: bool = False

    @model_validator(mode="after")
    def _validate_days(self) -> "TemplateApplyRequest":
        if self.days_of_week and any(day < 0 or day > 6 for day in self.days_of_week):
            raise ValueError("days_of_week values must be between 0 (Monday) and 6 (Sunday)")
        return self


class TemplateAssignmentRead(BaseModel):
    employee_id: int
    shift_date: date
    conflicts: list[ConflictRead]


class TemplateApplyResponse(BaseModel):
    created: list[ShiftRead]
    skipped: list[TemplateAssignmentRead]
    warnings: list[TemplateAssignmentRead]


class EmployeeHourStatsRead(BaseModel):
    employee_id: int
    reference_date: date
    week_start: date
    week_end: date
    month_start: date
    month_end: date
    scheduled_minutes_week: int
    scheduled_minutes_month: int
    scheduled_minutes_last_month: int
    shift_count_week: int
    shift_count_month: int
    average_minutes_per_shift: int
    max_minutes_per_week: int | None
    max_minutes_per_month: int | None
    remaining_minutes_week: int | None
    remaining_minutes_month: int | None
    is_over_limit: bool


class CheckOutRequest(BaseModel):
    actual_break_minutes: int | None = Field(default=None, ge=0, le=720)


class AnomalyRead(BaseModel):
    id: int
    shift_id: int
    anomaly_type: AnomalyType
    severity: int
    deviation_minutes: int
    requires_merchant_review: bool
    employee_reason: AnomalyReason | None
    employee_notes: str | None
    is_resolved: bool
    detected_at: datetime
    resolved_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class OvertimeRead(BaseModel):
    id: int
    shift_id: int
    employee_id: int
    overtime_date: date
    duration_minutes: int
    overtime_type: OvertimeType
    is_auto_detected: bool
    is_approved: bool
    approved_by: str | None
    approved_at: datetime | None
    employee_notes: str | None

    model_config = ConfigDict(from_attributes=True)


class CheckOutResponse(BaseModel):
    shift: ShiftRead
    overtime_minutes: int
    overtime_auto_approved: bool
    anomalies: list[AnomalyType]


class MissingPunchScanRequest(BaseModel):
    day: date


class CorrectionCreateRequest(BaseModel):
    field: CorrectionField
    new_value: str = Field(min_length=1, max_length=64)
    reason: str | None = Field(default=None, max_length=1000)


class CorrectionDecisionRequest(BaseModel):
    approve: bool


class CorrectionRead(BaseModel):
    id: int
    shift_id: int
    employee_id: int
    corrected_field: CorrectionField
    original_value: str | None
    new_value: str
    reason: str | None
    original_punch_ts: datetime
    submitted_at: datetime
    is_within_window: bool
    status: CorrectionStatus
    decided_at: datetime | None
    decided_by: str | None

    model_config = ConfigDict(from_attributes=True)


class OvertimeClassifyRequest(BaseModel):
    overtime_type: OvertimeType
    notes: str | None = Field(default=None, max_length=1000)


class OvertimeApproveRequest(BaseModel):
    overtime_type: OvertimeType | None = None


class AnomalyResolveRequest(BaseModel):
    reason: AnomalyReason
    notes: str | None = Field(default=None, max_length=1000)


class LeaveCreateRequest(BaseModel):
    employee_id: int = Field(ge=1)
    start_date: date
    end_date: date
    leave_type: LeaveType
    status: LeaveStatus = LeaveStatus.PENDING
    note: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _validate_range(self) -> "LeaveCreateRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be greater than or equal to start_date")
        return self


class LeaveStatusUpdateRequest(BaseModel):
    status: LeaveStatus


class LeaveRead(BaseModel):
    id: int
    employee_id: int
    start_date: date
    end_date: date
    leave_type: LeaveType
    status: LeaveStatus
    note: str | None
    created_at: datetime
    decided_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class WorkingHoursLimitUpsert(BaseModel):
    employee_id: int = Field(ge=1)
    max_minutes_per_day: int | None = Field(default=None, ge=1, le=1440)
    max_minutes_per_week: int | None = Field(default=None, ge=1, le=10080)
    max_minutes_per_month: int | None = Field(default=None, ge=1, le=44640)
    min_minutes_per_week: int | None = Field(default=None, ge=0, le=10080)
    min_minutes_per_month: int | None = Field(default=None, ge=0, le=44640)
    allow_overtime: bool = False
    max_overtime_minutes_per_week: int | None = Field(default=None, ge=0, le=10080)
    max_overtime_minutes_per_month: int | None = Field(default=None, ge=0, le=44640)
    valid_from: date
    valid_to: date | None = None

    @model_validator(mode="after")
    def _validate_bounds(self) -> "WorkingHoursLimitUpsert":
        if self.valid_to is not None and self.valid_to <= self.valid_from:
            raise ValueError("valid_to must be after valid_from")
        if (
            self.min_minutes_per_week is not None
            and self.max_minutes_per_week is not None
            and self.min_minutes_per_week > self.max_minutes_per_week
        ):
            raise ValueError("min_minutes_per_week cannot exceed max_minutes_per_week")
        if (
            self.min_minutes_per_month is not None
            and self.max_minutes_per_month is not None
            and self.min_minutes_per_month > self.max_minutes_per_month
        ):
            raise ValueError("min_minutes_per_month cannot exceed max_minutes_per_month")
        return self


class WorkingHoursLimitRead(BaseModel):
    id: int
    employee_id: int
    max_minutes_per_day: int | None
    max_minutes_per_week: int | None
    max_minutes_per_month: int | None
    min_minutes_per_week: int | None
    min_minutes_per_month: int | None
    allow_overtime: bool
    max_overtime_minutes_per_week: int | None
    max_overtime_minutes_per_month: int | None
    valid_from: date
    valid_to: date | None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SwapCreateRequest(BaseModel):
    shift_id: int = Field(ge=1)
    target_employee_id: int | None = Field(default=None, ge=1)
    offered_shift_id: int | None = Field(default=None, ge=1)
    message: str | None = Field(default=None, max_length=1000)


class SwapDecisionRequest(BaseModel):
    approve: bool
    target_employee_id: int | None = Field(default=None, ge=1)
    response_message: str | None = Field(default=None, max_length=1000)


class SwapRead(BaseModel):
    id: int
    shift_id: int
    requesting_employee_id: int
    target_employee_id: int | None
    offered_shift_id: int | None
    status: SwapStatus
    message: str | None
    response_message: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogRead(BaseModel):
    id: int
    ts_utc: datetime
    actor_type: AuditActorType
    actor_id: str
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    success: bool
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)
