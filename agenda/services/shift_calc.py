from __future__ import annotations

from calendar import monthrange
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Literal

from agenda.errors import RuleValidationError

ConflictKind = Literal["OVERLAP", "LEAVE", "LIMIT_EXCEEDED", "OVERTIME"]
ConflictSeverity = Literal["HARD", "SOFT"]
LimitPeriod = Literal["DAY", "WEEK", "MONTH"]


@dataclass(frozen=True)
class ProposedShift:
    shift_date: date
    start_time: time
    end_time: time
    break_minutes: int = 0

    def __post_init__(self) -> None:
        if self.break_minutes < 0:
            raise RuleValidationError("break_minutes must not be negative")
        if self.break_minutes >= gross_minutes(self.start_time, self.end_time):
            raise RuleValidationError("break_minutes must be shorter than the shift")

    @property
    def crosses_midnight(self) -> bool:
        return self.end_time <= self.start_time


@dataclass(frozen=True)
class Conflict:
    kind: ConflictKind
    severity: ConflictSeverity
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_hard(self) -> bool:
        return self.severity == "HARD"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "severity": self.severity,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class ValidationResult:
    conflicts: tuple[Conflict, ...] = ()

    @property
    def ok(self) -> bool:
        return not any(item.is_hard for item in self.conflicts)

    @property
    def hard_conflicts(self) -> list[Conflict]:
        return [item for item in self.conflicts if item.is_hard]

    @property
    def warnings(self) -> list[Conflict]:
        return [item for item in self.conflicts if not item.is_hard]

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "conflicts": [item.to_dict() for item in self.conflicts]}


def gross_minutes(start: time, end: time) -> int:
    """Scheduled span in minutes; an end at or before the start rolls into the next day."""
    start_minute = start.hour * 60 + start.minute
    end_minute = end.hour * 60 + end.minute
    if end_minute <= start_minute:
        end_minute += 24 * 60
    return end_minute - start_minute


def net_minutes(start: time, end: time, break_minutes: int) -> int:
    return max(0, gross_minutes(start, end) - max(0, break_minutes))


def shift_bounds(shift_date: date, start: time, end: time) -> tuple[datetime, datetime]:
    """Absolute local [start, end) of a shift. Breaks do not shorten it."""
    starts_at = datetime.combine(shift_date, start)
    return starts_at, starts_at + timedelta(minutes=gross_minutes(start, end))


def intervals_overlap(
    first: tuple[datetime, datetime],
    second: tuple[datetime, datetime],
) -> bool:
    return first[0] < second[1] and second[0] < first[1]


def iso_week_bounds(day: date) -> tuple[date, date]:
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def month_bounds(day: date) -> tuple[date, date]:
    return date(day.year, day.month, 1), date(day.year, day.month, monthrange(day.year, day.month)[1])


def find_overlaps(
    proposed: ProposedShift,
    existing: Iterable[Any],
) -> list[Conflict]:
    """Existing shifts whose absolute interval intersects the proposed one.

    ``existing`` items need ``id``, ``shift_date``, ``start_time`` and ``end_time``.
    """
    proposed_bounds = shift_bounds(proposed.shift_date, proposed.start_time, proposed.end_time)
    conflicts: list[Conflict] = []
    for shift in existing:
        other_bounds = shift_bounds(shift.shift_date, shift.start_time, shift.end_time)
        if not intervals_overlap(proposed_bounds, other_bounds):
            continue
        conflicts.append(
            Conflict(
                kind="OVERLAP",
                severity="HARD",
                message=(
                    f"Overlaps shift {shift.id} on {shift.shift_date.isoformat()} "
                    f"{shift.start_time.strftime('%H:%M')}-{shift.end_time.strftime('%H:%M')}."
                ),
                details={
                    "shift_id": shift.id,
                    "shift_date": shift.shift_date.isoformat(),
                    "start_time": shift.start_time.strftime("%H:%M"),
                    "end_time": shift.end_time.strftime("%H:%M"),
                },
            )
        )
    return conflicts


def scheduled_minutes_in_range(existing: Iterable[Any], start: date, end: date) -> int:
    """Net minutes of shifts dated within [start, end]; a shift counts toward its start date."""
    total = 0
    for shift in existing:
        if start <= shift.shift_date <= end:
            total += net_minutes(shift.start_time, shift.end_time, shift.break_minutes or 0)
    return total


def evaluate_limit(
    period: LimitPeriod,
    *,
    total_minutes: int,
    max_minutes: int | None,
    allow_overtime: bool,
    overtime_ceiling_minutes: int | None,
) -> Conflict | None:
    """Compare a period total with its maximum.

    Over the maximum without overtime is a hard block. With overtime allowed,
    anything up to max + ceiling is a soft warning; a period with no ceiling
    configured never turns hard.
    """
    if max_minutes is None or total_minutes <= max_minutes:
        return None

    details: dict[str, Any] = {
        "period": period,
        "total_minutes": total_minutes,
        "max_minutes": max_minutes,
        "excess_minutes": total_minutes - max_minutes,
    }
    if not allow_overtime:
        return Conflict(
            kind="LIMIT_EXCEEDED",
            severity="HARD",
            message=f"{period.title()} total {total_minutes} min exceeds limit {max_minutes} min.",
            details=details,
        )

    if overtime_ceiling_minutes is not None:
        details["overtime_ceiling_minutes"] = overtime_ceiling_minutes
        if total_minutes > max_minutes + overtime_ceiling_minutes:
            return Conflict(
                kind="LIMIT_EXCEEDED",
                severity="HARD",
                message=(
                    f"{period.title()} total {total_minutes} min exceeds limit {max_minutes} min "
                    f"plus overtime ceiling {overtime_ceiling_minutes} min."
                ),
                details=details,
            )

    return Conflict(
        kind="OVERTIME",
        severity="SOFT",
        message=f"{period.title()} total {total_minutes} min runs into overtime.",
        details=details,
    )


def evaluate_limits(
    proposed: ProposedShift,
    existing: Iterable[Any],
    limit: Any | None,
) -> list[Conflict]:
    """Day, ISO week and calendar month checks against one working-hours limit."""
    if limit is None:
        return []

    shifts = list(existing)
    proposed_minutes = net_minutes(proposed.start_time, proposed.end_time, proposed.break_minutes)
    week_start, week_end = iso_week_bounds(proposed.shift_date)
    month_start, month_end = month_bounds(proposed.shift_date)

    checks: list[tuple[LimitPeriod, int, int | None, int | None]] = [
        (
            "DAY",
            scheduled_minutes_in_range(shifts, proposed.shift_date, proposed.shift_date),
            limit.max_minutes_per_day,
            None,
        ),
        (
            "WEEK",
            scheduled_minutes_in_range(shifts, week_start, week_end),
            limit.max_minutes_per_week,
            limit.max_overtime_minutes_per_week,
        ),
        (
            "MONTH",
            scheduled_minutes_in_range(shifts, month_start, month_end),
            limit.max_minutes_per_month,
            limit.max_overtime_minutes_per_month,
        ),
    ]

    conflicts: list[Conflict] = []
    for period, scheduled, max_minutes, ceiling in checks:
        conflict = evaluate_limit(
            period,
            total_minutes=scheduled + proposed_minutes,
            max_minutes=max_minutes,
            allow_overtime=bool(limit.allow_overtime),
            overtime_ceiling_minutes=ceiling,
        )
        if conflict is not None:
            conflicts.append(conflict)
    return conflicts


def leave_conflicts(proposed: ProposedShift, leaves: Iterable[Any]) -> list[Conflict]:
    """Approved leave blocks, pending leave warns. Other statuses are ignored."""
    conflicts: list[Conflict] = []
    for leave in leaves:
        status = getattr(leave.status, "value", leave.status)
        if not leave.start_date <= proposed.shift_date <= leave.end_date:
            continue
        if status == "APPROVED":
            severity: ConflictSeverity = "HARD"
        elif status == "PENDING":
            severity = "SOFT"
        else:
            continue
        conflicts.append(
            Conflict(
                kind="LEAVE",
                severity=severity,
                message=(
                    f"{status.title()} leave {leave.id} covers "
                    f"{leave.start_date.isoformat()}..{leave.end_date.isoformat()}."
                ),
                details={
                    "leave_id": leave.id,
                    "status": status,
                    "start_date": leave.start_date.isoformat(),
                    "end_date": leave.end_date.isoformat(),
                },
            )
        )
    return conflicts
