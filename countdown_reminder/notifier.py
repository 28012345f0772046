"""Polling notification scheduler.

Every poll resolves each notifying event's next occurrence and fires when
the time left falls inside a narrow window just under the event's lead
time. A per-event last-fired map keeps overlapping polls from firing twice.
"""
import threading
import time as py_time
from datetime import datetime, timedelta

import schedule

from .calendar_math import clamp, to_int
from .common import APP_NAME, MAX_NOTIFY_MINUTES, log_debug, log_error, log_info
from .display import format_occurrence_label
from .recurrence import next_occurrence
from .storage import DEFAULT_CONFIG, load_events


def default_deliver(event, occurrence):
    log_info(f"{APP_NAME}: {event.get('title') or 'Event'} is coming up ({format_occurrence_label(occurrence)})")


class NotificationScheduler:
    def __init__(self, events_source=load_events, deliver=default_deliver, config=None, clock=datetime.now):
        settings = dict(DEFAULT_CONFIG)
        settings.update(config or {})
        self.events_source = events_source
        self.deliver = deliver
        self.clock = clock
        self.poll_interval_seconds = max(1, to_int(settings["poll_interval_seconds"], 5))
        self.fire_window = timedelta(seconds=max(1, to_int(settings["fire_window_seconds"], 15)))
        self.dedupe_window = timedelta(seconds=max(0, to_int(settings["dedupe_seconds"], 60)))
        self.last_notified = {}
        self._stop_event = threading.Event()
        self._thread = None
        self._scheduler = schedule.Scheduler()

    def is_in_fire_window(self, event, occurrence, now):
        lead = timedelta(minutes=clamp(to_int(event.get("notify_minutes_before"), 0), 0, MAX_NOTIFY_MINUTES))
        remaining = occurrence - now
        return lead - self.fire_window < remaining <= lead

    def check_and_notify(self, now=None):
        """Fire every due notification; returns the ids that fired."""
        now = now or self.clock()
        fired = []
        for event in self.events_source():
            if not event.get("notify"):
                continue
            event_id = event.get("id", "N/A")
            try:
                occurrence = next_occurrence(event, now)
                if not self.is_in_fire_window(event, occurrence, now):
                    continue
            except (ValueError, OverflowError):
                log_error(f"Invalid date or lead time for event {event_id}, skipping.")
                continue
            last = self.last_notified.get(event_id)
            if last is not None and now - last <= self.dedupe_window:
                log_debug(f"Skipping event {event_id} - notified at {last}.")
                continue

            self.last_notified[event_id] = now
            self.deliver(event, occurrence)
            fired.append(event_id)
        return fired

    def _poll(self):
        try:
            self.check_and_notify()
        except Exception as e:
            log_error(f"Error checking notifications: {e}", exc_info=True)

    def run_forever(self):
        log_info("Scheduler loop started.")
        self._scheduler.clear()
        self._scheduler.every(self.poll_interval_seconds).seconds.do(self._poll)
        while not self._stop_event.is_set():
            self._scheduler.run_pending()
            py_time.sleep(1)
        self._scheduler.clear()
        log_info("Scheduler loop stopped.")

    def start(self):
        if self._thread and self._thread.is_alive():
            return self._thread
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run_forever, daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout=3):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                log_error("Scheduler thread did not stop in time.")
            self._thread = None
