import unittest
from datetime import date, datetime
import os
import sys

# Add the parent directory to the Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from countdown_reminder.calendar_math import (
    add_months,
    add_years,
    clamp,
    days_in_month,
    format_local,
    month_index,
    nth_weekday_day_of_month,
    ordinal,
    parse_local,
    sunday_weekday,
    to_int,
    week_label,
    week_of_month,
)


class TestCalendarMath(unittest.TestCase):
    def test_days_in_month(self):
        self.assertEqual(days_in_month(2024, 1), 29)
        self.assertEqual(days_in_month(2023, 1), 28)
        self.assertEqual(days_in_month(2024, 3), 30)
        self.assertEqual(days_in_month(2024, 11), 31)

    def test_sunday_based_weekday(self):
        self.assertEqual(sunday_weekday(date(2024, 3, 17)), 0)  # Sunday
        self.assertEqual(sunday_weekday(date(2024, 3, 18)), 1)  # Monday
        self.assertEqual(sunday_weekday(date(2024, 3, 16)), 6)  # Saturday

    def test_week_of_month(self):
        self.assertEqual(week_of_month(date(2024, 3, 1)), 1)
        self.assertEqual(week_of_month(date(2024, 3, 7)), 1)
        self.assertEqual(week_of_month(date(2024, 3, 8)), 2)
        self.assertEqual(week_of_month(date(2024, 3, 29)), 5)

    def test_month_index(self):
        self.assertEqual(month_index(date(2024, 1, 1)), 2024 * 12)
        self.assertEqual(month_index(date(2024, 12, 31)) - month_index(date(2023, 12, 1)), 12)

    def test_nth_weekday_day_of_month(self):
        # January 2024 starts on a Monday and has five Mondays
        self.assertEqual(nth_weekday_day_of_month(2024, 0, 1, 1), 1)
        self.assertEqual(nth_weekday_day_of_month(2024, 0, 1, 5), 29)
        # February 2024 has only four Mondays: 5th falls back to the last one
        self.assertEqual(nth_weekday_day_of_month(2024, 1, 1, 5), 26)
        # 4th Thursday of November
        self.assertEqual(nth_weekday_day_of_month(2023, 10, 4, 4), 23)
        self.assertEqual(nth_weekday_day_of_month(2024, 10, 4, 4), 28)

    def test_nth_is_clamped(self):
        self.assertEqual(nth_weekday_day_of_month(2024, 0, 1, 0), 1)
        self.assertEqual(nth_weekday_day_of_month(2024, 0, 1, 9), 29)

    def test_ordinal(self):
        test_cases = [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"),
                      (12, "12th"), (13, "13th"), (21, "21st"), (22, "22nd"), (101, "101st"), (111, "111th")]
        for n, expected in test_cases:
            with self.subTest(n=n):
                self.assertEqual(ordinal(n), expected)

    def test_week_label(self):
        self.assertEqual(week_label(date(2024, 2, 26)), "Last")
        self.assertEqual(week_label(date(2024, 1, 22)), "4th")
        self.assertEqual(week_label(date(2024, 1, 29)), "Last")
        self.assertEqual(week_label(date(2024, 1, 1)), "1st")

    def test_to_int_and_clamp(self):
        self.assertEqual(to_int("3", 1), 3)
        self.assertEqual(to_int(3.9, 1), 3)
        self.assertEqual(to_int(-2.5, 1), -2)
        self.assertEqual(to_int(None, 7), 7)
        self.assertEqual(to_int("weekly", 7), 7)
        self.assertEqual(to_int(float("nan"), 7), 7)
        self.assertEqual(to_int(True, 7), 7)
        self.assertEqual(clamp(9, 0, 6), 6)
        self.assertEqual(clamp(-1, 0, 6), 0)

    def test_month_and_year_offsets_clamp_the_day(self):
        self.assertEqual(add_months(datetime(2024, 1, 31, 9, 0), 1), datetime(2024, 2, 29, 9, 0))
        self.assertEqual(add_months(datetime(2024, 1, 31, 9, 0), 3), datetime(2024, 4, 30, 9, 0))
        self.assertEqual(add_years(datetime(2020, 2, 29, 7, 30), 1), datetime(2021, 2, 28, 7, 30))

    def test_parse_and_format_local(self):
        self.assertEqual(parse_local("2024-03-15T10:00"), datetime(2024, 3, 15, 10, 0))
        self.assertEqual(parse_local("2024-03-15 10:00:30"), datetime(2024, 3, 15, 10, 0, 30))
        self.assertEqual(format_local(datetime(2024, 3, 5, 7, 4)), "2024-03-05T07:04")
        with self.assertRaises(ValueError):
            parse_local("next tuesday")
        with self.assertRaises(ValueError):
            parse_local(None)


if __name__ == '__main__':
    unittest.main()
