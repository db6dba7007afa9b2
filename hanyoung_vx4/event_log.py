import logging
import os
from datetime import datetime
from typing import Callable

logger = logging.getLogger(__name__)

# A log sink accepts human readable event and error messages
LogSink = Callable[[str], None]

EVENTS_LOGGER_NAME = "hanyoung_vx4.events"


def default_log_sink(message: str) -> None:
    logging.getLogger(EVENTS_LOGGER_NAME).info(message)


def guard_log_sink(log_sink: LogSink) -> LogSink:
    """ Wrap a log sink so that failures inside it can't abort a serial transaction.
    Failures are logged on this module's logger instead.
    """

    def guarded_log_sink(message: str) -> None:
        try:
            log_sink(message)
        except Exception:
            logger.warning(f"Log sink failed to record: {message}", exc_info=True)

    return guarded_log_sink


class _EventLogFormatter(logging.Formatter):
    default_time_format = "%Y-%m-%d, %H:%M:%S"
    default_msec_format = "%s:%03d"


class DailyFileHandler(logging.Handler):
    """ Append log records to one text file per day, e.g. "logs/2020-01-31.txt".
    Lines look like "[2020-01-31, 13:04:05:123] Connected to VX4 controller"
    """

    def __init__(self, directory: str, level=logging.NOTSET):
        super().__init__(level)
        self.directory = directory
        self.setFormatter(_EventLogFormatter("[%(asctime)s] %(message)s"))

    def get_filepath(self, record: logging.LogRecord) -> str:
        record_date = datetime.fromtimestamp(record.created).date()
        return os.path.join(self.directory, f"{record_date.isoformat()}.txt")

    def emit(self, record):
        try:
            line = self.format(record)
            os.makedirs(self.directory, exist_ok=True)
            with open(self.get_filepath(record), "a") as log_file:
                log_file.write(line + "\n")
        except Exception:
            self.handleError(record)


def get_file_log_sink(directory: str) -> LogSink:
    """ Build a log sink that writes each message to a daily file in directory

    Args:
        directory: folder to keep the daily log files in. Created if it doesn't exist.

    Returns:
        log sink function
    """
    file_logger = logging.getLogger(f"{EVENTS_LOGGER_NAME}.file.{directory}")
    file_logger.setLevel(logging.INFO)
    # File only. Console output goes through the events logger.
    file_logger.propagate = False
    if not any(isinstance(handler, DailyFileHandler) for handler in file_logger.handlers):
        file_logger.addHandler(DailyFileHandler(directory))

    return file_logger.info
