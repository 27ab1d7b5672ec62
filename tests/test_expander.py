import unittest
from datetime import date

from recurring_events import (
    DailyRule,
    Event,
    InvalidRule,
    MonthlyDayRule,
    MonthlyWeekdayRule,
    RecurrenceExpander,
    SingleOccurrence,
    Weekday,
    WeeklyRule,
    YearlyRule,
    expand,
    expand_event,
    make_rule,
)
from services.config_service import ConfigServiceImpl


class TestDailyExpansion(unittest.TestCase):
    def test_phase_aligned_to_anchor_not_window(self):
        rule = DailyRule(interval=3)
        result = expand(date(2025, 1, 3), rule, date(2025, 1, 11), date(2025, 1, 20))
        self.assertEqual(result, [date(2025, 1, 12), date(2025, 1, 15), date(2025, 1, 18)])

    def test_window_is_half_open(self):
        rule = DailyRule()
        result = expand(date(2025, 1, 1), rule, date(2025, 1, 5), date(2025, 1, 7))
        self.assertEqual(result, [date(2025, 1, 5), date(2025, 1, 6)])

    def test_window_before_anchor_starts_at_anchor(self):
        result = expand(date(2025, 1, 10), DailyRule(), date(2025, 1, 1), date(2025, 1, 12))
        self.assertEqual(result, [date(2025, 1, 10), date(2025, 1, 11)])

    def test_empty_or_inverted_window(self):
        self.assertEqual(expand(date(2025, 1, 1), DailyRule(), date(2025, 1, 5), date(2025, 1, 5)), [])
        self.assertEqual(expand(date(2025, 1, 1), DailyRule(), date(2025, 1, 9), date(2025, 1, 5)), [])

    def test_end_date_is_inclusive(self):
        rule = DailyRule(end_date=date(2025, 1, 3))
        result = expand(date(2025, 1, 1), rule, date(2025, 1, 1), date(2025, 2, 1))
        self.assertEqual(result, [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)])

    def test_accepts_iso_strings_and_datetimes(self):
        result = expand("2025-01-01", {"frequency": "daily"}, "2025-01-02T10:00", "2025-01-04")
        self.assertEqual(result, [date(2025, 1, 2), date(2025, 1, 3)])


class TestEndAfterAndExceptions(unittest.TestCase):
    def test_end_after_counts_from_anchor(self):
        rule = DailyRule(end_after=3)
        anchor = date(2025, 1, 1)
        self.assertEqual(
            expand(anchor, rule, date(2025, 1, 1), date(2025, 2, 1)),
            [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)],
        )
        # Only the tail of the series is inside this window
        self.assertEqual(
            expand(anchor, rule, date(2025, 1, 2), date(2025, 2, 1)),
            [date(2025, 1, 2), date(2025, 1, 3)],
        )
        self.assertEqual(expand(anchor, rule, date(2025, 1, 5), date(2025, 2, 1)), [])

    def test_end_after_total_across_windows(self):
        rule = WeeklyRule(weekdays=frozenset({Weekday.MONDAY, Weekday.THURSDAY}), end_after=5)
        anchor = date(2025, 1, 6)
        windows = [
            (date(2025, 1, 1), date(2025, 1, 10)),
            (date(2025, 1, 10), date(2025, 1, 20)),
            (date(2025, 1, 20), date(2025, 3, 1)),
        ]
        total = [d for start, end in windows for d in expand(anchor, rule, start, end)]
        self.assertEqual(len(total), 5)
        self.assertEqual(total[-1], date(2025, 1, 20))

    def test_exceptions_are_skipped_and_not_counted(self):
        rule = DailyRule(end_after=3, exceptions=frozenset({date(2025, 1, 2)}))
        result = expand(date(2025, 1, 1), rule, date(2025, 1, 1), date(2025, 2, 1))
        self.assertEqual(result, [date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 4)])

    def test_sequence_index_skips_exceptions_before_window(self):
        rule = DailyRule(exceptions=frozenset({date(2025, 1, 2)}))
        event = Event(id="e1", anchor_date=date(2025, 1, 1), rule=rule)
        occurrences = expand_event(event, date(2025, 1, 3), date(2025, 1, 5))
        self.assertEqual(
            [(o.date, o.sequence_index) for o in occurrences],
            [(date(2025, 1, 3), 1), (date(2025, 1, 4), 2)],
        )
        self.assertTrue(all(o.source_event_id == "e1" for o in occurrences))

    def test_excepted_anchor(self):
        rule = DailyRule(exceptions=frozenset({date(2025, 1, 1)}))
        result = expand(date(2025, 1, 1), rule, date(2025, 1, 1), date(2025, 1, 3))
        self.assertEqual(result, [date(2025, 1, 2)])


class TestWeeklyExpansion(unittest.TestCase):
    def test_two_weekdays_in_first_weeks(self):
        rule = make_rule("weekly", weekdays=["mon", "wed"])
        result = expand(date(2025, 1, 6), rule, date(2025, 1, 1), date(2025, 1, 16))
        self.assertEqual(
            result,
            [date(2025, 1, 6), date(2025, 1, 8), date(2025, 1, 13), date(2025, 1, 15)],
        )

    def test_window_starting_on_anchor(self):
        rule = WeeklyRule(weekdays=frozenset({Weekday.MONDAY, Weekday.WEDNESDAY}))
        result = expand(date(2025, 1, 6), rule, date(2025, 1, 6), date(2025, 1, 20))
        self.assertEqual(
            result,
            [date(2025, 1, 6), date(2025, 1, 8), date(2025, 1, 13), date(2025, 1, 15)],
        )

    def test_anchor_in_middle_of_week(self):
        rule = WeeklyRule(weekdays=frozenset({Weekday.MONDAY, Weekday.FRIDAY}))
        result = expand(date(2025, 1, 8), rule, date(2025, 1, 1), date(2025, 1, 21))
        self.assertEqual(
            result,
            [
                date(2025, 1, 8),
                date(2025, 1, 10),
                date(2025, 1, 13),
                date(2025, 1, 17),
                date(2025, 1, 20),
            ],
        )

    def test_fast_forward_matches_full_expansion(self):
        rule = WeeklyRule(interval=2, weekdays=frozenset({Weekday.TUESDAY, Weekday.SATURDAY}))
        anchor = date(2025, 1, 8)
        full = expand(anchor, rule, date(2025, 1, 1), date(2025, 6, 1))
        for start in (date(2025, 2, 3), date(2025, 2, 11), date(2025, 3, 16)):
            expected = [d for d in full if d >= start]
            self.assertEqual(expand(anchor, rule, start, date(2025, 6, 1)), expected)

    def test_interval_skips_weeks(self):
        rule = WeeklyRule(interval=2, weekdays=frozenset({Weekday.MONDAY}))
        result = expand(date(2025, 1, 6), rule, date(2025, 1, 10), date(2025, 2, 10))
        self.assertEqual(result, [date(2025, 1, 20), date(2025, 2, 3)])

    def test_no_weekdays_uses_anchor_weekday(self):
        result = expand(date(2025, 1, 9), WeeklyRule(), date(2025, 1, 1), date(2025, 1, 31))
        self.assertEqual(
            result,
            [date(2025, 1, 9), date(2025, 1, 16), date(2025, 1, 23), date(2025, 1, 30)],
        )


class TestMonthlyAndYearlyExpansion(unittest.TestCase):
    def test_month_day_is_clamped(self):
        rule = MonthlyDayRule(month_day=31)
        result = expand(date(2025, 1, 31), rule, date(2025, 1, 1), date(2025, 5, 1))
        self.assertEqual(
            result,
            [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)],
        )

    def test_month_day_clamped_in_leap_february(self):
        rule = MonthlyDayRule(month_day=31)
        result = expand(date(2024, 1, 31), rule, date(2024, 2, 1), date(2024, 3, 1))
        self.assertEqual(result, [date(2024, 2, 29)])

    def test_last_friday(self):
        rule = MonthlyWeekdayRule(month_week=-1, month_weekday=Weekday.FRIDAY)
        result = expand(date(2025, 1, 31), rule, date(2025, 1, 1), date(2025, 4, 1))
        self.assertEqual(result, [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 28)])

    def test_last_friday_in_five_friday_month(self):
        rule = MonthlyWeekdayRule(month_week=-1, month_weekday=Weekday.FRIDAY)
        result = expand(date(2025, 1, 31), rule, date(2025, 5, 1), date(2025, 6, 1))
        self.assertEqual(result, [date(2025, 5, 30)])

    def test_fourth_thursday(self):
        rule = MonthlyWeekdayRule(month_week=4, month_weekday="thu")
        result = expand(date(2025, 1, 23), rule, date(2025, 10, 1), date(2026, 1, 1))
        self.assertEqual(result, [date(2025, 10, 23), date(2025, 11, 27), date(2025, 12, 25)])

    def test_first_monday_every_two_months(self):
        rule = MonthlyWeekdayRule(interval=2, month_week=1, month_weekday="mon")
        result = expand(date(2025, 1, 6), rule, date(2025, 2, 1), date(2025, 8, 1))
        self.assertEqual(result, [date(2025, 3, 3), date(2025, 5, 5), date(2025, 7, 7)])

    def test_yearly_feb_29(self):
        result = expand(date(2024, 2, 29), YearlyRule(), date(2024, 1, 1), date(2029, 1, 1))
        self.assertEqual(
            result,
            [
                date(2024, 2, 29),
                date(2025, 2, 28),
                date(2026, 2, 28),
                date(2027, 2, 28),
                date(2028, 2, 29),
            ],
        )


class TestSingleOccurrenceAndErrors(unittest.TestCase):
    def test_no_recurrence_returns_anchor_inside_window(self):
        anchor = date(2025, 1, 6)
        self.assertEqual(expand(anchor, None, date(2025, 1, 1), date(2025, 2, 1)), [anchor])
        self.assertEqual(expand(anchor, SingleOccurrence(), date(2025, 1, 7), date(2025, 2, 1)), [])

    def test_invalid_rules_raise(self):
        with self.assertRaises(InvalidRule):
            make_rule("daily", interval=0)
        with self.assertRaises(InvalidRule):
            make_rule("monthly")
        with self.assertRaises(InvalidRule):
            make_rule("daily", end_date=date(2025, 2, 1), end_after=3)
        with self.assertRaises(InvalidRule):
            expand(
                date(2025, 1, 1),
                {"frequency": "monthly", "monthDay": 5, "monthWeek": 1, "monthWeekday": "mon"},
                date(2025, 1, 1),
                date(2025, 2, 1),
            )

    def test_disjoint_windows_partition_the_series(self):
        rule = MonthlyDayRule(month_day=15)
        anchor = date(2025, 1, 15)
        whole = expand(anchor, rule, date(2025, 1, 1), date(2026, 1, 1))
        split = expand(anchor, rule, date(2025, 1, 1), date(2025, 6, 15)) + expand(
            anchor, rule, date(2025, 6, 15), date(2026, 1, 1)
        )
        self.assertEqual(whole, split)
        self.assertEqual(len(whole), 12)

    def test_repeated_calls_are_identical(self):
        rule = make_rule("weekly", weekdays=["tue", "thu"], end_after=10)
        first = expand(date(2025, 1, 7), rule, date(2025, 1, 1), date(2025, 3, 1))
        second = expand(date(2025, 1, 7), rule, date(2025, 1, 1), date(2025, 3, 1))
        self.assertEqual(first, second)


class TestRecurrenceExpander(unittest.TestCase):
    def test_cap_from_config_logs_warning(self):
        config = ConfigServiceImpl({"MAX_OCCURRENCES_PER_EXPANSION": 5})
        expander = RecurrenceExpander(config_service=config)
        with self.assertLogs("recurring_events.engine", level="WARNING"):
            result = expander.expand(date(2025, 1, 1), DailyRule(), date(2025, 1, 1), date(2026, 1, 1))
        self.assertEqual(len(result), 5)

    def test_expand_event_uses_event_rule(self):
        expander = RecurrenceExpander()
        event = Event(id="e2", anchor_date=date(2025, 1, 1), rule=DailyRule(interval=7))
        occurrences = expander.expand_event(event, date(2025, 1, 1), date(2025, 1, 22))
        self.assertEqual([o.sequence_index for o in occurrences], [0, 1, 2])


if __name__ == "__main__":
    unittest.main()
