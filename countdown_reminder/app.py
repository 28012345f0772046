import argparse
import os
import sys
from datetime import datetime

from .calendar_math import format_local, parse_local
from .common import APP_NAME, INTERVAL_UNITS, RECURRENCE_TYPES, log_error, log_info, setup_logging
from .display import (
    can_mark_done,
    describe_rule,
    due_occurrence,
    format_countdown,
    format_occurrence_label,
    mark_event_done,
    sort_events_for_display,
    urgency,
)
from .notifier import NotificationScheduler
from .recurrence import next_occurrence, upcoming_occurrences
from .storage import (
    delete_event,
    load_app_config,
    load_events,
    migrate_store,
    new_event,
    save_events,
    upsert_event,
)


def find_event_by_token(events, token):
    """Match an event by full id or by a unique id prefix."""
    exact = [e for e in events if e.get("id") == token]
    if exact:
        return exact[0]
    matches = [e for e in events if str(e.get("id", "")).startswith(token)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        print(f"'{token}' matches {len(matches)} events, use a longer id.", file=sys.stderr)
    else:
        print(f"No event with id '{token}'.", file=sys.stderr)
    return None


# --- COMMANDS ---
def cmd_list(args, now):
    events = load_events()
    if not events:
        print("No events yet.")
        return 0
    for idx, event in enumerate(sort_events_for_display(events, now)):
        try:
            when = next_occurrence(event, now)
        except ValueError:
            print(f"{idx + 1:>3}  {event['id'][:8]}  {event.get('title', 'N/A')}  (invalid date '{event.get('date_local')}')")
            continue
        pin = "*" if event.get("pinned") else " "
        done = "  [done available]" if can_mark_done(event, now) else ""
        print(
            f"{idx + 1:>3}{pin} {event['id'][:8]}  {event.get('title', 'N/A')}"
            f"  {format_occurrence_label(when)}  {format_countdown(when, now)} ({urgency(when, now)})"
            f"  {describe_rule(event)}{done}"
        )
    return 0

def cmd_next(args, now):
    event = find_event_by_token(load_events(), args.event_id)
    if event is None:
        return 1
    reference = parse_local(args.from_time) if args.from_time else now
    anchor = parse_local(event["date_local"])
    for occurrence in upcoming_occurrences(anchor, event, reference, args.count):
        print(format_local(occurrence))
    return 0

def cmd_add(args, now):
    try:
        date_local = format_local(parse_local(args.date))
    except ValueError as e:
        print(f"Input Error: {e}", file=sys.stderr)
        return 1
    event = new_event(
        args.title,
        date_local,
        location=args.location,
        recurrence=args.recurrence,
        recurrence_interval=args.interval,
        recurrence_interval_unit=args.unit,
        recurrence_day_of_month=args.day_of_month,
        recurrence_month=args.month - 1 if args.month is not None else None,
        recurrence_week_of_month=args.week_of_month,
        recurrence_weekday=args.weekday,
        notify=args.notify_minutes is not None,
        notify_minutes_before=args.notify_minutes,
        pinned=args.pin,
    )
    if not save_events(upsert_event(load_events(), event)):
        return 1
    log_info(f"Added event {event['id']} ('{event['title']}') at {event['date_local']}.")
    print(event["id"])
    return 0

def cmd_done(args, now):
    events = load_events()
    event = find_event_by_token(events, args.event_id)
    if event is None:
        return 1
    if not can_mark_done(event, now):
        print(f"'{event.get('title') or event['id']}' has nothing due to mark done.", file=sys.stderr)
        return 1
    events = mark_event_done(events, event["id"], now)
    if not save_events(events):
        return 1
    updated = next(e for e in events if e["id"] == event["id"])
    print(f"Marked done. Next: {format_local(due_occurrence(updated))}")
    return 0

def cmd_delete(args, now):
    events = load_events()
    event = find_event_by_token(events, args.event_id)
    if event is None:
        return 1
    if not save_events(delete_event(events, event["id"])):
        return 1
    print(f"Deleted '{event.get('title', event['id'])}'.")
    return 0

def cmd_run(args, now):
    scheduler = NotificationScheduler(config=args.config)
    log_info(f"{APP_NAME} notification scheduler running every {scheduler.poll_interval_seconds}s. Ctrl+C to quit.")
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        log_info("Quit requested.")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="countdown-reminder", description=APP_NAME)
    parser.add_argument('--data-dir', help="Directory holding events.json, app_config.json and app.log.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List events by next occurrence.").set_defaults(func=cmd_list)

    p_next = sub.add_parser("next", help="Show upcoming occurrences of an event.")
    p_next.add_argument("event_id")
    p_next.add_argument("--from", dest="from_time", help="Reference time, YYYY-MM-DDTHH:MM (default: now).")
    p_next.add_argument("--count", type=int, default=5)
    p_next.set_defaults(func=cmd_next)

    p_add = sub.add_parser("add", help="Add an event.")
    p_add.add_argument("title")
    p_add.add_argument("date", help="Local date and time, YYYY-MM-DDTHH:MM.")
    p_add.add_argument("--location")
    p_add.add_argument("--recurrence", choices=sorted(RECURRENCE_TYPES.values()), default="none")
    p_add.add_argument("--interval", type=int, help="Interval count for 'interval' rules.")
    p_add.add_argument("--unit", choices=INTERVAL_UNITS, help="Interval unit for 'interval' rules.")
    p_add.add_argument("--day-of-month", type=int)
    p_add.add_argument("--month", type=int, help="1-12, for yearly nth-weekday rules.")
    p_add.add_argument("--week-of-month", type=int, help="1-5, 5 meaning last.")
    p_add.add_argument("--weekday", type=int, help="0=Sunday .. 6=Saturday.")
    p_add.add_argument("--notify-minutes", type=int, help="Notify this many minutes before each occurrence.")
    p_add.add_argument("--pin", action="store_true")
    p_add.set_defaults(func=cmd_add)

    p_done = sub.add_parser("done", help="Mark the current occurrence of a recurring event done.")
    p_done.add_argument("event_id")
    p_done.set_defaults(func=cmd_done)

    p_delete = sub.add_parser("delete", help="Delete an event.")
    p_delete.add_argument("event_id")
    p_delete.set_defaults(func=cmd_delete)

    sub.add_parser("run", help="Run the notification scheduler in the foreground.").set_defaults(func=cmd_run)
    return parser


def main(argv=None, now=None):
    args = build_parser().parse_args(argv)
    if args.data_dir:
        os.environ["COUNTDOWN_DATA_DIR"] = args.data_dir

    args.config = load_app_config()
    setup_logging(args.config.get("log_level", "INFO"))
    migrate_store()

    try:
        return args.func(args, now or datetime.now())
    except ValueError as e:
        log_error(f"{args.command} failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
