"""Recurrence resolution: the next occurrence of an event at or after a reference time.

``resolve_next_occurrence`` is pure. It never reads the clock, never mutates
its inputs and never raises for bad rule content: out-of-range numbers are
clamped, missing ones are derived from the anchor and unknown kinds behave
like ``none``.
"""
from datetime import MAXYEAR, datetime, timedelta

from .calendar_math import (
    add_days,
    add_months,
    add_years,
    at_time,
    clamp,
    month_index,
    nth_weekday_day_of_month,
    days_in_month,
    parse_local,
    sunday_weekday,
    to_int,
    week_of_month,
)
from .common import (
    INTERVAL_UNITS,
    MAX_INTERVAL,
    MAX_MONTHS_SCANNED,
    MAX_YEARS_SCANNED,
    RECURRENCE_DAILY,
    RECURRENCE_INTERVAL,
    RECURRENCE_MONTHLY,
    RECURRENCE_MONTHLY_DAY_OF_MONTH,
    RECURRENCE_MONTHLY_NTH_WEEKDAY,
    RECURRENCE_NONE,
    RECURRENCE_TYPES,
    RECURRENCE_WEEKLY,
    RECURRENCE_YEARLY,
    RECURRENCE_YEARLY_NTH_WEEKDAY,
    log_debug,
    log_warning,
)

CHECKPOINT_EPSILON = timedelta(milliseconds=1)


def normalize_recurrence(value):
    kind = str(value or RECURRENCE_NONE).strip().lower()
    return kind if kind in RECURRENCE_TYPES.values() else RECURRENCE_NONE


def normalize_interval_unit(value):
    unit = str(value or "day").strip().lower()
    return unit if unit in INTERVAL_UNITS else "day"


def explicit_weekday(rule):
    """The rule's weekday (0=Sunday) if one is set, else None."""
    weekday = to_int(rule.get("recurrence_weekday"), None)
    if weekday is None:
        return None
    return clamp(weekday, 0, 6)


# --- SKIP-AHEAD HELPERS ---
def _skip_ahead_days(start, step_days, reference):
    if start >= reference:
        return start
    step = timedelta(days=step_days)
    candidate = start + ((reference - start) // step) * step
    while candidate < reference:
        candidate += step
    return candidate


def _skip_ahead_calendar(base, interval, reference, distance, shift):
    """Closed-form month/year stepping from ``base``.

    ``distance`` is the whole-unit gap between base and reference and
    ``shift(base, n)`` lands on the n-th unit with the day clamped.
    Offsets are always measured from the base so a clamped day (31st in a
    30-day month) never drifts into later occurrences.
    """
    if base >= reference:
        return base
    offset = max(0, distance) // interval * interval
    # The floored distance should never overshoot; step back if it ever does
    while offset >= interval and shift(base, offset - interval) >= reference:
        offset -= interval
    candidate = shift(base, offset)
    while candidate < reference:
        offset += interval
        candidate = shift(base, offset)
    return candidate


def _skip_ahead_months(base, interval, reference):
    distance = month_index(reference) - month_index(base)
    return _skip_ahead_calendar(base, interval, reference, distance, add_months)


def _skip_ahead_years(base, interval, reference):
    distance = reference.year - base.year
    return _skip_ahead_calendar(base, interval, reference, distance, add_years)


def _walk_months(base, reference, day_for_month):
    year, month = base.year, base.month - 1
    for _ in range(MAX_MONTHS_SCANNED):
        if year > MAXYEAR:
            break
        candidate = datetime(year, month + 1, day_for_month(year, month), base.hour, base.minute)
        if candidate >= reference:
            return candidate
        year, month = divmod(year * 12 + month + 1, 12)
    return None


# --- PER-KIND RESOLVERS ---
def _resolve_daily(base, rule, reference):
    return _skip_ahead_days(base, 1, reference)


def _resolve_weekly(base, rule, reference):
    weekday = explicit_weekday(rule)
    if weekday is None:
        return _skip_ahead_days(base, 7, reference)
    if base >= reference:
        return base
    candidate = at_time(reference, base.hour, base.minute)
    candidate = add_days(candidate, (weekday - sunday_weekday(candidate) + 7) % 7)
    # Strict comparison: a slot exactly at the reference is kept so resolving is idempotent
    if candidate < reference:
        candidate = add_days(candidate, 7)
    return candidate


def _resolve_monthly(base, rule, reference):
    return _skip_ahead_months(base, 1, reference)


def _resolve_yearly(base, rule, reference):
    return _skip_ahead_years(base, 1, reference)


def _resolve_interval(base, rule, reference):
    interval = clamp(to_int(rule.get("recurrence_interval"), 1), 1, MAX_INTERVAL)
    unit = normalize_interval_unit(rule.get("recurrence_interval_unit"))

    if unit == "month":
        return _skip_ahead_months(base, interval, reference)
    if unit == "year":
        return _skip_ahead_years(base, interval, reference)

    start = base
    if unit == "week":
        weekday = explicit_weekday(rule)
        if weekday is not None:
            start = add_days(base, (weekday - sunday_weekday(base) + 7) % 7)
    step_days = interval * (7 if unit == "week" else 1)
    return _skip_ahead_days(start, step_days, reference)


def _nth_weekday_params(base, rule):
    weekday = clamp(to_int(rule.get("recurrence_weekday"), sunday_weekday(base)), 0, 6)
    nth = clamp(to_int(rule.get("recurrence_week_of_month"), week_of_month(base)), 1, 5)
    return weekday, nth


def _resolve_yearly_nth_weekday(base, rule, reference):
    month = clamp(to_int(rule.get("recurrence_month"), base.month - 1), 0, 11)
    weekday, nth = _nth_weekday_params(base, rule)
    year = base.year
    for _ in range(MAX_YEARS_SCANNED):
        if year > MAXYEAR:
            break
        day = nth_weekday_day_of_month(year, month, weekday, nth)
        candidate = datetime(year, month + 1, day, base.hour, base.minute)
        if candidate >= reference:
            return candidate
        year += 1
    return None


def _resolve_monthly_day_of_month(base, rule, reference):
    desired = clamp(to_int(rule.get("recurrence_day_of_month"), base.day), 1, 31)
    return _walk_months(base, reference, lambda year, month: min(desired, days_in_month(year, month)))


def _resolve_monthly_nth_weekday(base, rule, reference):
    weekday, nth = _nth_weekday_params(base, rule)
    return _walk_months(
        base, reference, lambda year, month: nth_weekday_day_of_month(year, month, weekday, nth)
    )


_RESOLVERS = {
    RECURRENCE_DAILY: _resolve_daily,
    RECURRENCE_WEEKLY: _resolve_weekly,
    RECURRENCE_MONTHLY: _resolve_monthly,
    RECURRENCE_YEARLY: _resolve_yearly,
    RECURRENCE_INTERVAL: _resolve_interval,
    RECURRENCE_YEARLY_NTH_WEEKDAY: _resolve_yearly_nth_weekday,
    RECURRENCE_MONTHLY_DAY_OF_MONTH: _resolve_monthly_day_of_month,
    RECURRENCE_MONTHLY_NTH_WEEKDAY: _resolve_monthly_nth_weekday,
}


# --- PUBLIC API ---
def resolve_next_occurrence(anchor, rule, reference):
    """Return the first occurrence of ``rule`` anchored at ``anchor`` that is >= ``reference``.

    ``rule`` is any mapping with the ``recurrence*`` keys of a stored event.
    The occurrence keeps the anchor's hour and minute. ``none`` returns the
    anchor unchanged whatever the reference. If a bounded search runs out
    the anchor is returned and a warning is logged.
    """
    kind = normalize_recurrence(rule.get("recurrence"))
    if kind == RECURRENCE_NONE:
        return anchor

    base = anchor.replace(second=0, microsecond=0)
    try:
        occurrence = _RESOLVERS[kind](base, rule, reference)
    except (OverflowError, ValueError) as e:
        log_warning(f"Recurrence '{kind}' for anchor {anchor} left the supported calendar range: {e}")
        return anchor

    if occurrence is None:
        log_warning(
            f"Recurrence '{kind}' found no occurrence at or after {reference} "
            f"for anchor {anchor}; falling back to the anchor."
        )
        return anchor
    return occurrence


def resolve_after_checkpoint(anchor, rule, completed_through):
    """First occurrence strictly after a completion checkpoint."""
    return resolve_next_occurrence(anchor, rule, completed_through + CHECKPOINT_EPSILON)


def next_occurrence(event, now):
    """Next occurrence of a stored event dict at or after ``now``."""
    anchor = parse_local(event.get("date_local"))
    occurrence = resolve_next_occurrence(anchor, event, now)
    log_debug(f"Next occurrence for event {event.get('id', 'N/A')}: {occurrence}")
    return occurrence


def upcoming_occurrences(anchor, rule, reference, count):
    """Yield up to ``count`` consecutive occurrences starting at ``reference``."""
    for _ in range(max(0, count)):
        occurrence = resolve_next_occurrence(anchor, rule, reference)
        if occurrence < reference:
            return
        yield occurrence
        if normalize_recurrence(rule.get("recurrence")) == RECURRENCE_NONE:
            return
        reference = occurrence + CHECKPOINT_EPSILON
