from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Literal

from agenda.errors import RuleValidationError

ResolutionSource = Literal["CLOSURE", "EXCEPTION", "RECURRING", "NONE"]


def _check_capacity(value: int | None, name: str) -> None:
    if value is not None and value < 0:
        raise RuleValidationError(f"{name} must be zero or positive")


def _check_slot_duration(value: int | None) -> None:
    if value is not None and value <= 0:
        raise RuleValidationError("slot_duration_minutes must be positive")


def _check_bounds(open_time: time, close_time: time) -> None:
    if open_time >= close_time:
        raise RuleValidationError(
            f"open_time {open_time.isoformat()} must be earlier than close_time {close_time.isoformat()}"
        )


@dataclass(frozen=True)
class WindowSpec:
    """One open interval inside a day, without a weekday."""

    open_time: time
    close_time: time
    max_capacity: int | None = None
    slot_duration_minutes: int | None = None
    label: str | None = None

    def __post_init__(self) -> None:
        _check_bounds(self.open_time, self.close_time)
        _check_capacity(self.max_capacity, "max_capacity")
        _check_slot_duration(self.slot_duration_minutes)


@dataclass(frozen=True)
class RecurringWindow:
    day_of_week: int
    open_time: time
    close_time: time
    max_capacity: int | None = None
    slot_duration_minutes: int | None = None
    label: str | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.day_of_week <= 6:
            raise RuleValidationError(f"day_of_week must be within 0..6, got {self.day_of_week}")
        _check_bounds(self.open_time, self.close_time)
        _check_capacity(self.max_capacity, "max_capacity")
        _check_slot_duration(self.slot_duration_minutes)

    def as_spec(self) -> WindowSpec:
        return WindowSpec(
            open_time=self.open_time,
            close_time=self.close_time,
            max_capacity=self.max_capacity,
            slot_duration_minutes=self.slot_duration_minutes,
            label=self.label,
        )


@dataclass(frozen=True)
class DateException:
    """Replaces the weekly rule for a single date. Windows are ignored when closed."""

    exception_date: date
    is_closed: bool
    windows: tuple[WindowSpec, ...] = ()
    max_capacity: int | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        _check_capacity(self.max_capacity, "max_capacity")


@dataclass(frozen=True)
class ClosureRule:
    start_date: date
    end_date: date
    reason: str = ""

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise RuleValidationError(
                f"start_date {self.start_date.isoformat()} must not be after end_date {self.end_date.isoformat()}"
            )

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class ResolvedWindow:
    open_time: time
    close_time: time
    max_capacity: int | None = None
    slot_duration_minutes: int | None = None
    label: str | None = None


@dataclass(frozen=True)
class ResolvedDay:
    day: date
    is_closed: bool
    windows: tuple[ResolvedWindow, ...] = ()
    source: ResolutionSource = "NONE"
    day_capacity: int | None = None
    reason: str | None = None


@dataclass(frozen=True)
class Slot:
    start_time: time
    end_time: time
    override_capacity: int | None = None
    window_capacity: int | None = None
