"""Calendar arithmetic shared by the recurrence resolver and the display layer.

Everything here is pure: dates and datetimes are immutable, every helper
returns a new value. Months are 0-based (0=January) and weekdays are
Sunday-based (0=Sunday .. 6=Saturday) to match the persisted event schema.
"""
import calendar
import math
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from .common import LOCAL_DATETIME_FORMAT

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

_LOCAL_INPUT_FORMATS = (LOCAL_DATETIME_FORMAT, "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S")


def clamp(n, low, high):
    return max(low, min(high, n))


def to_int(value, default):
    """Truncate ``value`` to an int, or return ``default`` if it is not numeric."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return int(number)


def days_in_month(year, month):
    return calendar.monthrange(year, month + 1)[1]


def sunday_weekday(d):
    """Day of week with Sunday=0 (``date.weekday()`` has Monday=0)."""
    return (d.weekday() + 1) % 7


def week_of_month(d):
    """1..5 based on the day number."""
    return (d.day - 1) // 7 + 1


def month_index(d):
    """Months since year 0, used for whole-month distances."""
    return d.year * 12 + (d.month - 1)


def nth_weekday_day_of_month(year, month, weekday, nth):
    """Day number of the ``nth`` ``weekday`` in the month.

    When the month has no such occurrence (always the case for a missing
    5th), the last occurrence in the month is returned instead.
    """
    first_weekday = sunday_weekday(date(year, month + 1, 1))
    first_occurrence = 1 + (weekday - first_weekday + 7) % 7
    candidate = first_occurrence + (clamp(nth, 1, 5) - 1) * 7
    last_day = days_in_month(year, month)
    if candidate <= last_day:
        return candidate
    weeks_available = (last_day - first_occurrence) // 7
    return first_occurrence + weeks_available * 7


def is_last_weekday_of_month(d):
    return (d + timedelta(days=7)).month != d.month


def ordinal(n):
    v = abs(int(n))
    if 11 <= v % 100 <= 13:
        return f"{v}th"
    return f"{v}" + {1: "st", 2: "nd", 3: "rd"}.get(v % 10, "th")


def week_label(d):
    """'Last' when ``d`` is the final such weekday of its month, else '1st'..'4th'."""
    if is_last_weekday_of_month(d):
        return "Last"
    return ordinal(week_of_month(d))


def at_time(d, hour, minute):
    return datetime(d.year, d.month, d.day, hour, minute)


def add_days(dt, days):
    return dt + timedelta(days=days)


def add_months(dt, months):
    # relativedelta clamps the day to the target month's last day (Jan 31 + 1 month -> Feb 28/29)
    return dt + relativedelta(months=months)


def add_years(dt, years):
    return dt + relativedelta(years=years)


def parse_local(text):
    """Parse a stored local wall-clock string; raises ValueError when malformed."""
    if isinstance(text, datetime):
        return text
    text = str(text).strip()
    for fmt in _LOCAL_INPUT_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"Invalid local date/time: {text!r}")


def format_local(dt):
    return dt.strftime(LOCAL_DATETIME_FORMAT)
