import json
import os
import uuid

from dateutil import parser as date_parser
from dateutil import tz

from .calendar_math import clamp, format_local, to_int
from .common import (
    CONFIG_FILENAME,
    DATA_FILENAME,
    MAX_INTERVAL,
    MAX_NOTIFY_MINUTES,
    data_file_path,
    log_debug,
    log_error,
    log_info,
)
from .recurrence import normalize_interval_unit, normalize_recurrence

DEFAULT_CONFIG = {
    "poll_interval_seconds": 5,
    "fire_window_seconds": 15,
    "dedupe_seconds": 60,
    "log_level": "INFO",
}

# camelCase keys written by older builds
LEGACY_KEYS = {
    "dateLocal": "date_local",
    "dateISO": "date_iso",
    "completedThroughLocal": "completed_through_local",
    "recurrenceInterval": "recurrence_interval",
    "recurrenceIntervalUnit": "recurrence_interval_unit",
    "recurrenceDayOfMonth": "recurrence_day_of_month",
    "recurrenceMonth": "recurrence_month",
    "recurrenceWeekOfMonth": "recurrence_week_of_month",
    "recurrenceWeekday": "recurrence_weekday",
    "notifyMinutesBefore": "notify_minutes_before",
    "textColor": "text_color",
}

# Optional rule parameters: dropped when not numeric, clamped otherwise
OPTIONAL_RULE_RANGES = (
    ("recurrence_day_of_month", 1, 31),
    ("recurrence_month", 0, 11),
    ("recurrence_week_of_month", 1, 5),
    ("recurrence_weekday", 0, 6),
)


def events_file_path():
    return os.environ.get("COUNTDOWN_DATA_FILE") or data_file_path(DATA_FILENAME)

def config_file_path():
    return os.environ.get("COUNTDOWN_CONFIG_FILE") or data_file_path(CONFIG_FILENAME)


# --- MIGRATION ---
def _iso_to_local(value):
    dt = date_parser.isoparse(str(value))
    if dt.tzinfo is not None:
        dt = dt.astimezone(tz.tzlocal()).replace(tzinfo=None)
    return format_local(dt)

def migrate_event(raw):
    """Return a copy of ``raw`` with legacy keys renamed and missing fields backfilled."""
    event = {LEGACY_KEYS.get(key, key): value for key, value in raw.items()}

    if not event.get("date_local") and event.get("date_iso"):
        try:
            event["date_local"] = _iso_to_local(event["date_iso"])
            del event["date_iso"]
        except (ValueError, OverflowError):
            log_error(f"Could not convert legacy date '{event['date_iso']}' for event {event.get('id', 'N/A')}")

    event["id"] = str(event.get("id") or uuid.uuid4())
    event["title"] = str(event.get("title") or "")
    event["location"] = str(event.get("location") or "")
    event["recurrence"] = normalize_recurrence(event.get("recurrence"))
    event["recurrence_interval"] = clamp(to_int(event.get("recurrence_interval"), 1), 1, MAX_INTERVAL)
    event["recurrence_interval_unit"] = normalize_interval_unit(event.get("recurrence_interval_unit"))

    for key, low, high in OPTIONAL_RULE_RANGES:
        if key not in event:
            continue
        value = to_int(event[key], None)
        if value is None:
            del event[key]
        else:
            event[key] = clamp(value, low, high)

    if not event.get("completed_through_local"):
        event.pop("completed_through_local", None)

    event["notify"] = bool(event.get("notify", False))
    event["notify_minutes_before"] = clamp(to_int(event.get("notify_minutes_before"), 0), 0, MAX_NOTIFY_MINUTES)
    event["pinned"] = bool(event.get("pinned", False))
    return event

def new_event(title, date_local, **fields):
    """Build a fully backfilled event for ``title`` anchored at ``date_local``."""
    raw = {"id": str(uuid.uuid4()), "title": title, "date_local": date_local}
    raw.update({key: value for key, value in fields.items() if value is not None})
    return migrate_event(raw)


# --- DATA HANDLING FUNCTIONS ---
def _read_json(path):
    with open(path, 'r') as f:
        content = f.read()
    if not content.strip():
        return None
    return json.loads(content)

def load_events(path=None):
    path = path or events_file_path()
    if not os.path.exists(path):
        log_debug(f"Data file {path} does not exist. Returning empty list.")
        return []
    try:
        raw_events = _read_json(path)
    except (OSError, ValueError):
        log_error(f"Error loading events from {path}", exc_info=True)
        return []
    if raw_events is None:
        log_debug("Data file is empty. Returning empty list.")
        return []
    if not isinstance(raw_events, list):
        log_error("Data file does not contain a list. Returning empty list.")
        return []
    events = [migrate_event(e) for e in raw_events if isinstance(e, dict)]
    log_debug(f"Successfully loaded {len(events)} events.")
    return events

def save_events(events, path=None):
    path = path or events_file_path()
    try:
        with open(path, 'w') as f:
            json.dump(list(events), f, indent=4)
        log_debug(f"Successfully saved {len(events)} events.")
        return True
    except (OSError, TypeError, ValueError):
        log_error(f"Error saving events to {path}", exc_info=True)
        return False

def migrate_store(path=None):
    """Rewrite the data file if loading it backfilled or renamed anything."""
    path = path or events_file_path()
    if not os.path.exists(path):
        return False
    try:
        raw_events = _read_json(path)
    except (OSError, ValueError):
        log_error(f"Error reading {path} for migration", exc_info=True)
        return False
    if not isinstance(raw_events, list):
        return False
    migrated = load_events(path)
    if migrated == [e for e in raw_events if isinstance(e, dict)]:
        return False
    log_info(f"Migrated {len(migrated)} events in {path}.")
    return save_events(migrated, path)

def find_event(events, event_id):
    return next((e for e in events if e.get("id") == event_id), None)

def upsert_event(events, event):
    """Return a new list with ``event`` replacing the one with the same id, or appended."""
    updated = [event if e.get("id") == event.get("id") else e for e in events]
    if find_event(events, event.get("id")) is None:
        updated.append(event)
    return updated

def delete_event(events, event_id):
    return [e for e in events if e.get("id") != event_id]


# --- APP CONFIG ---
def load_app_config(path=None):
    path = path or config_file_path()
    config = dict(DEFAULT_CONFIG)
    if not os.path.exists(path):
        return config
    try:
        stored = _read_json(path)
    except (OSError, ValueError) as e:
        log_error(f"Error loading app config: {e}")
        return config
    if isinstance(stored, dict):
        config.update(stored)
    return config

def save_app_config(config_data, path=None):
    path = path or config_file_path()
    try:
        with open(path, 'w') as f:
            json.dump(config_data, f, indent=4)
        return True
    except (OSError, TypeError, ValueError) as e:
        log_error(f"Error saving app config: {e}")
        return False
