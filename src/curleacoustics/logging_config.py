"""
Logging Configuration
Console (and optional file) output for the replay driver. Library use
through CurleMonitor leaves handler setup to the host application.
"""
import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "curleacoustics"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%H:%M:%S'

# third-party loggers that flood --debug output
QUIET_LOGGERS = ("matplotlib", "h5py")


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Route 'curleacoustics' records to stdout and, optionally, a log file.

    Calling it again replaces the previous handlers.

    Args:
        level: Threshold for the package logger and its handlers.
        log_file: Path of a log file, truncated on open.

    Returns:
        The package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    logger.addHandler(_handler(logging.StreamHandler(sys.stdout), level, formatter))
    if log_file:
        logger.addHandler(_handler(logging.FileHandler(log_file, mode='w', encoding='utf-8'), level, formatter))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.debug(f"Logging to stdout{f' and {log_file}' if log_file else ''} at level {logging.getLevelName(level)}")
    return logger
