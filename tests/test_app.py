import unittest
from unittest import mock
from contextlib import redirect_stdout, redirect_stderr
from datetime import datetime
import io
import os
import sys
import tempfile

# Add the parent directory to the Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from countdown_reminder import app
from countdown_reminder.storage import load_events


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.TemporaryDirectory()
        self.original_data_dir = os.environ.get('COUNTDOWN_DATA_DIR')
        self.now = datetime(2024, 3, 5, 12, 0)
        patcher = mock.patch.object(app, "setup_logging")
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.test_dir.cleanup()
        if self.original_data_dir is None:
            os.environ.pop('COUNTDOWN_DATA_DIR', None)
        else:
            os.environ['COUNTDOWN_DATA_DIR'] = self.original_data_dir

    def run_cli(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = app.main(["--data-dir", self.test_dir.name] + list(argv), now=self.now)
        return code, out.getvalue(), err.getvalue()

    def events(self):
        return load_events(os.path.join(self.test_dir.name, "events.json"))

    def add_standup(self):
        code, out, _ = self.run_cli("add", "Standup", "2024-03-04T10:00", "--recurrence", "weekly",
                                    "--weekday", "1", "--notify-minutes", "15")
        self.assertEqual(code, 0)
        return out.strip()

    def test_add_and_list(self):
        event_id = self.add_standup()
        stored = self.events()
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]["id"], event_id)
        self.assertEqual(stored[0]["recurrence_weekday"], 1)
        self.assertTrue(stored[0]["notify"])
        self.assertEqual(stored[0]["notify_minutes_before"], 15)

        code, out, _ = self.run_cli("list")
        self.assertEqual(code, 0)
        self.assertIn("Standup", out)
        self.assertIn("Monday, March 11, 2024 10:00", out)
        self.assertIn("Every week on Monday", out)

    def test_add_yearly_rule_takes_calendar_month(self):
        code, _, _ = self.run_cli("add", "Thanksgiving", "2023-11-23T12:00", "--recurrence", "yearly_nth_weekday",
                                  "--month", "11", "--weekday", "4", "--week-of-month", "4")
        self.assertEqual(code, 0)
        self.assertEqual(self.events()[0]["recurrence_month"], 10)

    def test_add_rejects_bad_date(self):
        code, _, err = self.run_cli("add", "Broken", "next week")
        self.assertEqual(code, 1)
        self.assertIn("Input Error", err)
        self.assertEqual(self.events(), [])

    def test_next_lists_upcoming_occurrences(self):
        event_id = self.add_standup()
        code, out, _ = self.run_cli("next", event_id[:8], "--count", "3")
        self.assertEqual(code, 0)
        self.assertEqual(out.split(), ["2024-03-11T10:00", "2024-03-18T10:00", "2024-03-25T10:00"])

    def test_done_and_delete(self):
        event_id = self.add_standup()
        code, out, _ = self.run_cli("done", event_id)
        self.assertEqual(code, 0)
        self.assertIn("2024-03-11T10:00", out)
        self.assertEqual(self.events()[0]["completed_through_local"], "2024-03-05T12:00")

        code, _, _ = self.run_cli("delete", event_id)
        self.assertEqual(code, 0)
        self.assertEqual(self.events(), [])

    def test_done_refused_when_nothing_due(self):
        event_id = self.add_standup()
        self.assertEqual(self.run_cli("done", event_id)[0], 0)
        # Next occurrence (March 11) is still ahead
        code, _, err = self.run_cli("done", event_id)
        self.assertEqual(code, 1)
        self.assertIn("nothing due", err)
        self.assertEqual(self.events()[0]["completed_through_local"], "2024-03-05T12:00")

        code, out, _ = self.run_cli("add", "Dentist", "2024-03-01T09:00")
        code, _, err = self.run_cli("done", out.strip())
        self.assertEqual(code, 1)
        self.assertNotIn("completed_through_local", self.events()[1])

    def test_unknown_event(self):
        code, _, err = self.run_cli("done", "nope")
        self.assertEqual(code, 1)
        self.assertIn("No event", err)

    def test_list_empty(self):
        code, out, _ = self.run_cli("list")
        self.assertEqual(code, 0)
        self.assertIn("No events yet.", out)


if __name__ == '__main__':
    unittest.main()
