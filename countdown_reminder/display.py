"""Display helpers: ordering, countdowns and labels for stored events."""
from datetime import datetime, timedelta

from .calendar_math import (
    MONTH_NAMES,
    WEEKDAY_NAMES,
    clamp,
    format_local,
    ordinal,
    parse_local,
    sunday_weekday,
    to_int,
    week_of_month,
)
from .common import (
    RECURRENCE_DAILY,
    RECURRENCE_INTERVAL,
    RECURRENCE_MONTHLY,
    RECURRENCE_MONTHLY_DAY_OF_MONTH,
    RECURRENCE_MONTHLY_NTH_WEEKDAY,
    RECURRENCE_NONE,
    RECURRENCE_WEEKLY,
    RECURRENCE_YEARLY,
    RECURRENCE_YEARLY_NTH_WEEKDAY,
    log_error,
)
from .recurrence import (
    explicit_weekday,
    next_occurrence,
    normalize_interval_unit,
    normalize_recurrence,
    resolve_after_checkpoint,
)

SOON_WINDOW = timedelta(hours=24)

URGENCY_DUE = "due"
URGENCY_SOON = "soon"
URGENCY_UPCOMING = "upcoming"


# --- OCCURRENCES ---
def due_occurrence(event):
    """The occurrence the user still has to acknowledge.

    Recurring events stay on their anchor until marked done; after that the
    first occurrence strictly after the completion checkpoint is shown.
    """
    anchor = parse_local(event.get("date_local"))
    if normalize_recurrence(event.get("recurrence")) == RECURRENCE_NONE:
        return anchor
    checkpoint = event.get("completed_through_local")
    if not checkpoint:
        return anchor
    return resolve_after_checkpoint(anchor, event, parse_local(checkpoint))

def mark_event_done(events, event_id, now):
    """Return a new event list with ``event_id`` checkpointed at ``now``."""
    checkpoint = format_local(now)
    return [dict(e, completed_through_local=checkpoint) if e.get("id") == event_id else e for e in events]

def can_mark_done(event, now):
    return normalize_recurrence(event.get("recurrence")) != RECURRENCE_NONE and due_occurrence(event) <= now

def sort_events_for_display(events, now):
    """Pinned events first, then by next occurrence. Unparseable dates sink to the end."""
    def sort_key(event):
        try:
            when = next_occurrence(event, now)
        except ValueError:
            log_error(f"Invalid date '{event.get('date_local')}' for event {event.get('id', 'N/A')}")
            when = datetime.max
        return (not event.get("pinned", False), when)
    return sorted(events, key=sort_key)


# --- COUNTDOWN ---
def countdown_parts(target, now):
    delta = target - now
    ms = int(delta / timedelta(milliseconds=1))
    total_minutes = abs(ms) // 60000
    days, rest = divmod(total_minutes, 60 * 24)
    hours, minutes = divmod(rest, 60)
    return {"ms": ms, "days": days, "hours": hours, "minutes": minutes}

def urgency(target, now):
    remaining = target - now
    if remaining <= timedelta(0):
        return URGENCY_DUE
    if remaining <= SOON_WINDOW:
        return URGENCY_SOON
    return URGENCY_UPCOMING

def format_countdown(target, now):
    parts = countdown_parts(target, now)
    if parts["ms"] <= 0:
        return "Now"
    if parts["days"]:
        return f"{parts['days']} day{'s' if parts['days'] != 1 else ''}"
    return f"{parts['hours']}h {parts['minutes']:02}m"


# --- TIME FORMATTING ---
def format_occurrence_label(dt):
    return f"{WEEKDAY_NAMES[sunday_weekday(dt)]}, {MONTH_NAMES[dt.month - 1]} {dt.day}, {dt.year} {dt:%H:%M}"


# --- RULE DESCRIPTIONS ---
def nth_label(nth):
    return "Last" if nth >= 5 else ordinal(nth)

def describe_rule(event):
    kind = normalize_recurrence(event.get("recurrence"))
    try:
        anchor = parse_local(event.get("date_local"))
    except ValueError:
        anchor = None

    if kind == RECURRENCE_NONE:
        return "Does not repeat"
    if kind == RECURRENCE_DAILY:
        return "Every day"
    if kind == RECURRENCE_MONTHLY:
        return "Every month"
    if kind == RECURRENCE_YEARLY:
        return "Every year"

    weekday = explicit_weekday(event)
    if kind == RECURRENCE_WEEKLY:
        return f"Every week on {WEEKDAY_NAMES[weekday]}" if weekday is not None else "Every week"

    if kind == RECURRENCE_INTERVAL:
        count = max(1, to_int(event.get("recurrence_interval"), 1))
        unit = normalize_interval_unit(event.get("recurrence_interval_unit"))
        text = f"Every {unit}" if count == 1 else f"Every {count} {unit}s"
        if unit == "week" and weekday is not None:
            text += f" on {WEEKDAY_NAMES[weekday]}"
        return text

    if anchor is None:
        return kind.replace("_", " ").capitalize()

    if kind == RECURRENCE_MONTHLY_DAY_OF_MONTH:
        day = clamp(to_int(event.get("recurrence_day_of_month"), anchor.day), 1, 31)
        return f"Monthly on the {ordinal(day)}"

    if weekday is None:
        weekday = sunday_weekday(anchor)
    nth = clamp(to_int(event.get("recurrence_week_of_month"), week_of_month(anchor)), 1, 5)
    if kind == RECURRENCE_MONTHLY_NTH_WEEKDAY:
        return f"{nth_label(nth)} {WEEKDAY_NAMES[weekday]} of every month"
    if kind == RECURRENCE_YEARLY_NTH_WEEKDAY:
        month = clamp(to_int(event.get("recurrence_month"), anchor.month - 1), 0, 11)
        return f"{nth_label(nth)} {WEEKDAY_NAMES[weekday]} of {MONTH_NAMES[month]}"
    return kind
