"""Countdown Reminder: recurring countdown events with lead-time notifications."""
__version__ = "1.0.0"
