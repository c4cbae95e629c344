import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO", log_file: str | None = None):
    """
    Configures the root logger for the preview app.

    The capture and pipeline threads log through the same root handler, so the
    thread name is included whenever the level is DEBUG.

    Args:
        log_level: The minimum log level to output (e.g., "INFO", "DEBUG").
        log_file: If provided, logs are appended to this file instead of stdout.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Drop existing handlers so repeated calls reconfigure instead of duplicate
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    fmt = LOG_FORMAT
    if level <= logging.DEBUG:
        fmt = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"

    if log_file:
        handler = logging.FileHandler(log_file, mode="a")
    else:
        handler = logging.StreamHandler(sys.stdout)

    handler.setFormatter(logging.Formatter(fmt))
    root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Returns the logger for `name` (typically __name__)."""
    return logging.getLogger(name)
