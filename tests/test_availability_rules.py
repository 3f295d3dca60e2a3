from __future__ import annotations

from datetime import date, time
import unittest

from agenda.errors import ConfigurationError, RuleValidationError
from agenda.services.availability_calc import covering_windows, expand_slots, find_slot, resolve_rules
from agenda.services.rules import (
    ClosureRule,
    DateException,
    RecurringWindow,
    ResolvedDay,
    ResolvedWindow,
    WindowSpec,
)

# 2026-03-02 is a Monday.
MONDAY = date(2026, 3, 2)


def _weekly(*windows: tuple[time, time], day_of_week: int = 0, max_capacity: int | None = None) -> list[RecurringWindow]:
    return [
        RecurringWindow(day_of_week=day_of_week, open_time=start, close_time=end, max_capacity=max_capacity)
        for start, end in windows
    ]


class RuleValidationTests(unittest.TestCase):
    def test_window_requires_open_before_close(self) -> None:
        with self.assertRaises(RuleValidationError):
            WindowSpec(open_time=time(12, 0), close_time=time(9, 0))
        with self.assertRaises(RuleValidationError):
            RecurringWindow(day_of_week=1, open_time=time(9, 0), close_time=time(9, 0))

    def test_day_of_week_outside_range_rejected(self) -> None:
        with self.assertRaises(RuleValidationError):
            RecurringWindow(day_of_week=7, open_time=time(9, 0), close_time=time(10, 0))

    def test_negative_capacity_and_zero_slot_duration_rejected(self) -> None:
        with self.assertRaises(RuleValidationError):
            WindowSpec(open_time=time(9, 0), close_time=time(10, 0), max_capacity=-1)
        with self.assertRaises(RuleValidationError):
            WindowSpec(open_time=time(9, 0), close_time=time(10, 0), slot_duration_minutes=0)

    def test_closure_with_inverted_range_rejected(self) -> None:
        with self.assertRaises(RuleValidationError):
            ClosureRule(start_date=date(2026, 8, 20), end_date=date(2026, 8, 10))

    def test_closure_bounds_are_inclusive(self) -> None:
        closure = ClosureRule(start_date=date(2026, 8, 10), end_date=date(2026, 8, 20))
        self.assertTrue(closure.covers(date(2026, 8, 10)))
        self.assertTrue(closure.covers(date(2026, 8, 20)))
        self.assertFalse(closure.covers(date(2026, 8, 21)))


class ResolveRulesTests(unittest.TestCase):
    def test_recurring_windows_for_matching_weekday(self) -> None:
        resolved = resolve_rules(
            MONDAY,
            closures=[],
            exception=None,
            recurring=_weekly((time(9, 0), time(13, 0)), (time(14, 0), time(18, 0)), max_capacity=10),
        )
        self.assertFalse(resolved.is_closed)
        self.assertEqual(resolved.source, "RECURRING")
        self.assertEqual([(w.open_time, w.close_time) for w in resolved.windows], [
            (time(9, 0), time(13, 0)),
            (time(14, 0), time(18, 0)),
        ])
        self.assertEqual(resolved.day_capacity, 10)

    def test_no_rows_for_weekday_means_closed(self) -> None:
        resolved = resolve_rules(
            MONDAY,
            closures=[],
            exception=None,
            recurring=_weekly((time(9, 0), time(13, 0)), day_of_week=1),
        )
        self.assertTrue(resolved.is_closed)
        self.assertEqual(resolved.source, "NONE")

    def test_explicitly_closed_weekday(self) -> None:
        resolved = resolve_rules(MONDAY, closures=[], exception=None, recurring=[], recurring_closed=True)
        self.assertTrue(resolved.is_closed)
        self.assertEqual(resolved.source, "RECURRING")

    def test_closure_beats_open_exception(self) -> None:
        exception = DateException(
            exception_date=MONDAY,
            is_closed=False,
            windows=(WindowSpec(open_time=time(10, 0), close_time=time(12, 0)),),
        )
        resolved = resolve_rules(
            MONDAY,
            closures=[ClosureRule(start_date=date(2026, 3, 1), end_date=date(2026, 3, 3), reason="Holiday")],
            exception=exception,
            recurring=_weekly((time(9, 0), time(18, 0))),
        )
        self.assertTrue(resolved.is_closed)
        self.assertEqual(resolved.source, "CLOSURE")
        self.assertEqual(resolved.reason, "Holiday")
        self.assertEqual(resolved.windows, ())

    def test_exception_replaces_weekly_windows_entirely(self) -> None:
        exception = DateException(
            exception_date=MONDAY,
            is_closed=False,
            windows=(WindowSpec(open_time=time(10, 0), close_time=time(12, 0)),),
            max_capacity=4,
        )
        resolved = resolve_rules(
            MONDAY,
            closures=[],
            exception=exception,
            recurring=_weekly((time(9, 0), time(13, 0)), (time(14, 0), time(18, 0))),
        )
        self.assertEqual(resolved.source, "EXCEPTION")
        self.assertEqual(len(resolved.windows), 1)
        self.assertEqual(resolved.windows[0].open_time, time(10, 0))
        # Windows without their own capacity inherit the exception's.
        self.assertEqual(resolved.windows[0].max_capacity, 4)

    def test_closed_exception_and_exception_without_windows_close_the_day(self) -> None:
        for exception in (
            DateException(exception_date=MONDAY, is_closed=True,
                          windows=(WindowSpec(open_time=time(9, 0), close_time=time(10, 0)),)),
            DateException(exception_date=MONDAY, is_closed=False, windows=()),
        ):
            resolved = resolve_rules(
                MONDAY,
                closures=[],
                exception=exception,
                recurring=_weekly((time(9, 0), time(18, 0))),
            )
            self.assertTrue(resolved.is_closed)
            self.assertEqual(resolved.source, "EXCEPTION")

    def test_identical_windows_collapse_overlapping_stay_separate(self) -> None:
        resolved = resolve_rules(
            MONDAY,
            closures=[],
            exception=None,
            recurring=_weekly(
                (time(9, 0), time(12, 0)),
                (time(9, 0), time(12, 0)),
                (time(11, 0), time(14, 0)),
            ),
        )
        self.assertEqual(
            [(w.open_time, w.close_time) for w in resolved.windows],
            [(time(9, 0), time(12, 0)), (time(11, 0), time(14, 0))],
        )


class ExpandSlotsTests(unittest.TestCase):
    def _day(self, *windows: ResolvedWindow) -> ResolvedDay:
        return ResolvedDay(day=MONDAY, is_closed=False, windows=windows, source="RECURRING")

    def test_trailing_partial_slot_is_dropped(self) -> None:
        slots = expand_slots(
            self._day(ResolvedWindow(open_time=time(9, 0), close_time=time(10, 30))),
            service_slot_duration_minutes=40,
        )
        self.assertEqual(
            [(slot.start_time, slot.end_time) for slot in slots],
            [(time(9, 0), time(9, 40)), (time(9, 40), time(10, 20))],
        )

    def test_slot_ending_exactly_at_close_is_kept(self) -> None:
        slots = expand_slots(
            self._day(ResolvedWindow(open_time=time(9, 0), close_time=time(11, 0))),
            service_slot_duration_minutes=60,
        )
        self.assertEqual(slots[-1].end_time, time(11, 0))
        self.assertEqual(len(slots), 2)

    def test_window_duration_overrides_service_default(self) -> None:
        slots = expand_slots(
            self._day(ResolvedWindow(open_time=time(9, 0), close_time=time(10, 0), slot_duration_minutes=15)),
            service_slot_duration_minutes=60,
        )
        self.assertEqual(len(slots), 4)

    def test_missing_duration_is_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError):
            expand_slots(
                self._day(ResolvedWindow(open_time=time(9, 0), close_time=time(10, 0))),
                service_slot_duration_minutes=None,
            )

    def test_closed_day_has_no_slots(self) -> None:
        closed = ResolvedDay(day=MONDAY, is_closed=True, source="CLOSURE")
        self.assertEqual(expand_slots(closed, service_slot_duration_minutes=None), [])

    def test_slot_override_and_window_capacity_carried(self) -> None:
        slots = expand_slots(
            self._day(ResolvedWindow(open_time=time(9, 0), close_time=time(11, 0), max_capacity=6)),
            service_slot_duration_minutes=60,
            slot_overrides={time(10, 0): 2},
        )
        self.assertEqual((slots[0].override_capacity, slots[0].window_capacity), (None, 6))
        self.assertEqual((slots[1].override_capacity, slots[1].window_capacity), (2, 6))

    def test_overlapping_windows_sharing_a_slot_add_capacity(self) -> None:
        slots = expand_slots(
            self._day(
                ResolvedWindow(open_time=time(9, 0), close_time=time(11, 0), max_capacity=4),
                ResolvedWindow(open_time=time(10, 0), close_time=time(12, 0), max_capacity=3),
            ),
            service_slot_duration_minutes=60,
        )
        self.assertEqual(
            [(slot.start_time, slot.window_capacity) for slot in slots],
            [(time(9, 0), 4), (time(10, 0), 7), (time(11, 0), 3)],
        )

    def test_uncapped_window_leaves_shared_slot_to_service_default(self) -> None:
        slots = expand_slots(
            self._day(
                ResolvedWindow(open_time=time(9, 0), close_time=time(11, 0), max_capacity=4),
                ResolvedWindow(open_time=time(10, 0), close_time=time(12, 0)),
            ),
            service_slot_duration_minutes=60,
        )
        self.assertEqual([slot.window_capacity for slot in slots], [4, None, None])

    def test_find_slot_matches_start_and_fits_end(self) -> None:
        slots = expand_slots(
            self._day(ResolvedWindow(open_time=time(9, 0), close_time=time(11, 0))),
            service_slot_duration_minutes=60,
        )
        self.assertEqual(find_slot(slots, time(10, 0), None).start_time, time(10, 0))
        self.assertIsNone(find_slot(slots, time(9, 30), None))
        self.assertIsNone(find_slot(slots, time(9, 0), time(10, 30)))


class CoveringWindowsTests(unittest.TestCase):
    WINDOWS = (
        ResolvedWindow(open_time=time(9, 0), close_time=time(12, 0)),
        ResolvedWindow(open_time=time(12, 0), close_time=time(14, 0)),
        ResolvedWindow(open_time=time(15, 0), close_time=time(18, 0)),
    )

    def test_range_inside_single_window(self) -> None:
        chain = covering_windows(self.WINDOWS, time(9, 30), time(11, 0))
        self.assertEqual(len(chain), 1)

    def test_contiguous_windows_chain(self) -> None:
        chain = covering_windows(self.WINDOWS, time(11, 0), time(13, 0))
        self.assertEqual([w.open_time for w in chain], [time(9, 0), time(12, 0)])

    def test_gap_breaks_containment(self) -> None:
        self.assertEqual(covering_windows(self.WINDOWS, time(13, 0), time(16, 0)), [])

    def test_range_past_close_not_contained(self) -> None:
        self.assertEqual(covering_windows(self.WINDOWS, time(16, 0), time(18, 30)), [])


if __name__ == "__main__":
    unittest.main()
