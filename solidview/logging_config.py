"""Logging for solidview.

Everything the viewer logs goes through the ``solidview`` logger namespace:
fetch results, batch outcomes and the page's JavaScript console, which the
preview forwards. Output goes to stdout and optionally to a log file.
"""
import logging
import sys
from typing import Optional

LOGGER_NAME = "solidview"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%H:%M:%S"
# requests logs every connection through urllib3; only its problems matter here.
QUIET_LOGGERS = ("urllib3",)


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Route solidview's log records to the console and, if given, a log file.

    Args:
        level: Threshold for the solidview namespace (e.g. logging.DEBUG).
        log_file: Path of a file that receives the same records; appended to.

    Returns:
        The configured ``solidview`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    # Called again on every CLI run inside one process (tests), so start clean.
    logger.handlers.clear()

    _attach(logger, logging.StreamHandler(sys.stdout), level)
    if log_file:
        _attach(logger, logging.FileHandler(log_file, mode="a", encoding="utf-8"), level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.debug("Logging to stdout%s", f" and {log_file}" if log_file else "")
    return logger
