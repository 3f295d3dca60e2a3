from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from agenda.models import AnomalyType, OvertimeType
from agenda.settings import Settings, get_settings

CORRECTION_AUTO_APPROVE_WINDOW = timedelta(hours=24)
SEVERE_LATE_MINUTES = 30
REVIEW_SEVERITY = 3

ANOMALY_SEVERITY: dict[AnomalyType, int] = {
    AnomalyType.LATE_CHECK_IN: 2,
    AnomalyType.EARLY_CHECK_IN: 1,
    AnomalyType.LATE_CHECK_OUT: 2,
    AnomalyType.EARLY_CHECK_OUT: 2,
    AnomalyType.MISSING_CHECK_IN: 4,
    AnomalyType.MISSING_CHECK_OUT: 4,
    AnomalyType.EXTENDED_BREAK: 2,
}


@dataclass(frozen=True)
class AnomalyPolicy:
    check_in_tolerance_minutes: int = 15
    check_out_tolerance_minutes: int = 30
    break_tolerance_minutes: int = 10
    missing_punch_grace_minutes: int = 60
    overtime_auto_approve_minutes: int = 15

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> AnomalyPolicy:
        current = settings or get_settings()
        return cls(
            check_in_tolerance_minutes=current.anomaly_check_in_tolerance_minutes,
            check_out_tolerance_minutes=current.anomaly_check_out_tolerance_minutes,
            break_tolerance_minutes=current.anomaly_break_tolerance_minutes,
            missing_punch_grace_minutes=current.missing_punch_grace_minutes,
            overtime_auto_approve_minutes=current.overtime_auto_approve_minutes,
        )


@dataclass(frozen=True)
class ScheduledShift:
    """Planned shift in absolute UTC time."""

    start_utc: datetime
    end_utc: datetime
    break_minutes: int = 0

    @property
    def net_minutes(self) -> int:
        return max(0, _minutes_between(self.start_utc, self.end_utc) - max(0, self.break_minutes))


@dataclass(frozen=True)
class DetectedAnomaly:
    anomaly_type: AnomalyType
    severity: int
    deviation_minutes: int

    @property
    def requires_review(self) -> bool:
        return self.severity >= REVIEW_SEVERITY


@dataclass(frozen=True)
class Classification:
    overtime_minutes: int
    overtime_type: OvertimeType
    overtime_auto_approved: bool
    anomalies: tuple[DetectedAnomaly, ...] = ()
    worked_minutes: int = 0

    @property
    def requires_review(self) -> bool:
        if any(item.requires_review for item in self.anomalies):
            return True
        return self.overtime_minutes > 0 and not self.overtime_auto_approved


def _minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def _anomaly(anomaly_type: AnomalyType, deviation_minutes: int, severity: int | None = None) -> DetectedAnomaly:
    return DetectedAnomaly(
        anomaly_type=anomaly_type,
        severity=ANOMALY_SEVERITY[anomaly_type] if severity is None else severity,
        deviation_minutes=max(0, deviation_minutes),
    )


def classify(
    shift: ScheduledShift,
    actual_check_in: datetime | None,
    actual_check_out: datetime | None,
    *,
    actual_break_minutes: int | None = None,
    now_utc: datetime | None = None,
    policy: AnomalyPolicy | None = None,
) -> Classification:
    """Overtime and timing anomalies of one shift. Pure; callers persist the result.

    Overtime is worked time beyond the scheduled net duration, using the
    recorded break when there is one and the planned break otherwise.
    """
    rules = policy or AnomalyPolicy.from_settings()
    current = now_utc or datetime.now(timezone.utc)
    anomalies: list[DetectedAnomaly] = []
    missing_deadline = shift.end_utc + timedelta(minutes=rules.missing_punch_grace_minutes)

    if actual_check_in is None:
        if current > missing_deadline:
            anomalies.append(_anomaly(AnomalyType.MISSING_CHECK_IN, 0))
    else:
        late_by = _minutes_between(shift.start_utc, actual_check_in)
        early_by = _minutes_between(actual_check_in, shift.start_utc)
        if late_by > rules.check_in_tolerance_minutes:
            severity = 3 if late_by > SEVERE_LATE_MINUTES else 2
            anomalies.append(_anomaly(AnomalyType.LATE_CHECK_IN, late_by, severity))
        elif early_by > rules.check_in_tolerance_minutes:
            anomalies.append(_anomaly(AnomalyType.EARLY_CHECK_IN, early_by))

    if actual_check_out is None:
        if current > missing_deadline:
            anomalies.append(_anomaly(AnomalyType.MISSING_CHECK_OUT, 0))
    else:
        late_by = _minutes_between(shift.end_utc, actual_check_out)
        early_by = _minutes_between(actual_check_out, shift.end_utc)
        if late_by > rules.check_out_tolerance_minutes:
            anomalies.append(_anomaly(AnomalyType.LATE_CHECK_OUT, late_by))
        elif early_by > rules.check_out_tolerance_minutes:
            anomalies.append(_anomaly(AnomalyType.EARLY_CHECK_OUT, early_by))

    if actual_break_minutes is not None:
        extra_break = actual_break_minutes - max(0, shift.break_minutes)
        if extra_break > rules.break_tolerance_minutes:
            anomalies.append(_anomaly(AnomalyType.EXTENDED_BREAK, extra_break))

    overtime_minutes = 0
    worked_minutes = 0
    if actual_check_in is not None and actual_check_out is not None and actual_check_out > actual_check_in:
        effective_break = shift.break_minutes if actual_break_minutes is None else actual_break_minutes
        worked_minutes = max(0, _minutes_between(actual_check_in, actual_check_out) - max(0, effective_break))
        overtime_minutes = max(0, worked_minutes - shift.net_minutes)

    return Classification(
        overtime_minutes=overtime_minutes,
        overtime_type=OvertimeType.PENDING,
        overtime_auto_approved=0 < overtime_minutes <= rules.overtime_auto_approve_minutes,
        anomalies=tuple(anomalies),
        worked_minutes=worked_minutes,
    )


def evaluate_correction(original_punch_utc: datetime, submitted_at_utc: datetime) -> bool:
    """True when the correction lands within 24h of the punch (inclusive)."""
    return submitted_at_utc - original_punch_utc <= CORRECTION_AUTO_APPROVE_WINDOW
