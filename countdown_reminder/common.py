import logging
from logging.handlers import RotatingFileHandler
import os
import sys
import traceback

# --- PATH HELPER FUNCTIONS ---
def data_dir():
    """ Directory for data, config and log files. COUNTDOWN_DATA_DIR wins, then next to the EXE/package """
    env_dir = os.environ.get("COUNTDOWN_DATA_DIR")
    if env_dir:
        return os.path.abspath(os.path.expanduser(env_dir))
    if getattr(sys, 'frozen', False):
        # Running as a bundled executable (PyInstaller)
        exe_dir = os.path.dirname(sys.executable)
        if os.path.basename(exe_dir).lower() == 'dist':
            return os.path.dirname(exe_dir)
        return exe_dir
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

def data_file_path(filename):
    """ Get path for data files, typically next to EXE or project root """
    return os.path.join(data_dir(), filename)

# --- CONSTANTS ---
APP_NAME = "Countdown Reminder"
DATA_FILENAME = "events.json"
CONFIG_FILENAME = "app_config.json"
LOG_FILENAME = "app.log"

LOCAL_DATETIME_FORMAT = "%Y-%m-%dT%H:%M"

# Recurrence kinds as persisted
RECURRENCE_NONE = "none"
RECURRENCE_INTERVAL = "interval"
RECURRENCE_YEARLY = "yearly"
RECURRENCE_YEARLY_NTH_WEEKDAY = "yearly_nth_weekday"
RECURRENCE_MONTHLY = "monthly"
RECURRENCE_MONTHLY_DAY_OF_MONTH = "monthly_day_of_month"
RECURRENCE_MONTHLY_NTH_WEEKDAY = "monthly_nth_weekday"
RECURRENCE_WEEKLY = "weekly"
RECURRENCE_DAILY = "daily"

RECURRENCE_TYPES = {
    "None": RECURRENCE_NONE,
    "Every N": RECURRENCE_INTERVAL,
    "Daily": RECURRENCE_DAILY,
    "Weekly": RECURRENCE_WEEKLY,
    "Monthly": RECURRENCE_MONTHLY,
    "Monthly (day of month)": RECURRENCE_MONTHLY_DAY_OF_MONTH,
    "Monthly (nth weekday)": RECURRENCE_MONTHLY_NTH_WEEKDAY,
    "Yearly": RECURRENCE_YEARLY,
    "Yearly (nth weekday)": RECURRENCE_YEARLY_NTH_WEEKDAY,
}

INTERVAL_UNITS = ("day", "week", "month", "year")
MAX_INTERVAL = 10000
MAX_NOTIFY_MINUTES = 366 * 24 * 60

# Safety valves for the walking resolvers
MAX_YEARS_SCANNED = 20
MAX_MONTHS_SCANNED = 240

# --- LOGGING SETUP ---
logger = logging.getLogger(APP_NAME)

def setup_logging(level="INFO", log_file=None):
    """Set up logging configuration for the application."""
    log_format = '%(asctime)s - %(levelname)s - %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'

    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if logger.handlers:
        # Already configured (e.g. main() called twice in-process)
        return logger

    formatter = logging.Formatter(log_format, date_format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = log_file or data_file_path(LOG_FILENAME)
    try:
        file_handler = RotatingFileHandler(log_file, maxBytes=1024*1024, backupCount=5)  # 1MB per file, 5 backups
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Log file '{log_file}' not writable, logging to console only: {e}")

    return logger

# --- ERROR HANDLING ---
def log_error(error_msg, exc_info=None):
    """Log an error message with optional exception info."""
    if exc_info:
        logger.error(f"{error_msg}\n{traceback.format_exc()}")
    else:
        logger.error(error_msg)

def log_warning(warning_msg):
    logger.warning(warning_msg)

def log_info(info_msg):
    """Log an info message."""
    logger.info(info_msg)

def log_debug(debug_msg):
    """Log a debug message."""
    logger.debug(debug_msg)
