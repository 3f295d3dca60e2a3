from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import date, time

from agenda.errors import ConfigurationError
from agenda.services.rules import (
    ClosureRule,
    DateException,
    RecurringWindow,
    ResolvedDay,
    ResolvedWindow,
    Slot,
    WindowSpec,
)

MINUTES_PER_DAY = 24 * 60


def minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minute(value: int) -> time:
    return time(hour=value // 60, minute=value % 60)


def _resolved(spec: WindowSpec, day_capacity: int | None = None) -> ResolvedWindow:
    return ResolvedWindow(
        open_time=spec.open_time,
        close_time=spec.close_time,
        max_capacity=spec.max_capacity if spec.max_capacity is not None else day_capacity,
        slot_duration_minutes=spec.slot_duration_minutes,
        label=spec.label,
    )


def collapse_identical_windows(windows: Iterable[ResolvedWindow]) -> tuple[ResolvedWindow, ...]:
    """Drop windows repeating an earlier (open, close) pair; the first occurrence wins.

    Windows that merely overlap stay separate and are booked independently.
    """
    seen: set[tuple[time, time]] = set()
    collapsed: list[ResolvedWindow] = []
    for window in windows:
        key = (window.open_time, window.close_time)
        if key in seen:
            continue
        seen.add(key)
        collapsed.append(window)
    collapsed.sort(key=lambda item: (item.open_time, item.close_time))
    return tuple(collapsed)


def resolve_rules(
    day: date,
    *,
    closures: Sequence[ClosureRule],
    exception: DateException | None,
    recurring: Sequence[RecurringWindow],
    recurring_closed: bool = False,
) -> ResolvedDay:
    """Merge the three rule layers for one date.

    Closure beats exception, exception beats the weekly rule. An exception
    replaces the weekly windows outright, even with fewer windows.
    """
    covering = [closure for closure in closures if closure.covers(day)]
    if covering:
        return ResolvedDay(day=day, is_closed=True, source="CLOSURE", reason=covering[0].reason or None)

    if exception is not None:
        if exception.is_closed or not exception.windows:
            return ResolvedDay(day=day, is_closed=True, source="EXCEPTION", reason=exception.reason)
        return ResolvedDay(
            day=day,
            is_closed=False,
            windows=collapse_identical_windows(_resolved(item, exception.max_capacity) for item in exception.windows),
            source="EXCEPTION",
            day_capacity=exception.max_capacity,
            reason=exception.reason,
        )

    weekday_rows = [row for row in recurring if row.day_of_week == day.weekday()]
    if recurring_closed or not weekday_rows:
        return ResolvedDay(day=day, is_closed=True, source="RECURRING" if recurring_closed else "NONE")

    capacities = [row.max_capacity for row in weekday_rows if row.max_capacity is not None]
    return ResolvedDay(
        day=day,
        is_closed=False,
        windows=collapse_identical_windows(_resolved(row.as_spec()) for row in weekday_rows),
        source="RECURRING",
        day_capacity=max(capacities) if capacities else None,
    )


def _combined_capacity(first: int | None, second: int | None) -> int | None:
    # Shared slot carries the sum of the window caps; an uncapped window defers to the service default.
    if first is None or second is None:
        return None
    return first + second


def expand_slots(
    resolved: ResolvedDay,
    *,
    service_slot_duration_minutes: int | None,
    slot_overrides: Mapping[time, int] | None = None,
) -> list[Slot]:
    """Enumerate open, open+d, ... while the whole slot fits before close.

    A trailing remainder shorter than the slot duration is dropped. Windows
    that yield the same (start, end) slot share one slot with their
    capacities combined.
    """
    if resolved.is_closed:
        return []

    overrides = slot_overrides or {}
    slots: dict[tuple[time, time], Slot] = {}
    for window in resolved.windows:
        duration = window.slot_duration_minutes or service_slot_duration_minutes
        if duration is None or duration <= 0:
            raise ConfigurationError(
                "Slot booking requires slot_duration_minutes on the service or on every window."
            )
        window_capacity = window.max_capacity

        cursor = minute_of_day(window.open_time)
        close_minute = minute_of_day(window.close_time)
        while cursor + duration <= close_minute:
            start = time_from_minute(cursor)
            end = time_from_minute(cursor + duration)
            existing = slots.get((start, end))
            if existing is None:
                slots[(start, end)] = Slot(
                    start_time=start,
                    end_time=end,
                    override_capacity=overrides.get(start),
                    window_capacity=window_capacity,
                )
            else:
                slots[(start, end)] = replace(
                    existing,
                    window_capacity=_combined_capacity(existing.window_capacity, window_capacity),
                )
            cursor += duration

    return sorted(slots.values(), key=lambda item: (item.start_time, item.end_time))


def covering_windows(
    windows: Sequence[ResolvedWindow],
    start: time,
    end: time,
) -> list[ResolvedWindow]:
    """Windows that together contain [start, end), or an empty list.

    Contiguous windows (one closes exactly when the next opens) are chained;
    any gap breaks containment.
    """
    if start >= end:
        return []

    start_minute = minute_of_day(start)
    end_minute = minute_of_day(end)
    ordered = sorted(windows, key=lambda item: (item.open_time, item.close_time))

    for index, first in enumerate(ordered):
        if not minute_of_day(first.open_time) <= start_minute < minute_of_day(first.close_time):
            continue
        chain = [first]
        reach = minute_of_day(first.close_time)
        for candidate in ordered[index + 1:]:
            if reach >= end_minute:
                break
            if minute_of_day(candidate.open_time) == reach:
                chain.append(candidate)
                reach = minute_of_day(candidate.close_time)
        if reach >= end_minute:
            return chain
    return []


def find_slot(slots: Sequence[Slot], start: time, end: time | None) -> Slot | None:
    for slot in slots:
        if slot.start_time != start:
            continue
        if end is not None and end > slot.end_time:
            continue
        return slot
    return None
