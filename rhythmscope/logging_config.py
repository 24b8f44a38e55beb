"""Logging configuration for rhythmscope."""

import logging
import sys

DEFAULT_FORMAT = "%(levelname)s: %(message)s"

# Elapsed milliseconds line up with the detector's ms timestamps
VERBOSE_FORMAT = "%(relativeCreated)9.1fms %(levelname)s %(name)s: %(message)s"

QUIET_LOGGERS = ("librosa", "numba", "soundfile", "audioread")


def setup_logging(verbose: bool = False):
    """Configure logging for the application.

    Args:
        verbose: Enable debug logging, with elapsed time and logger names, if True.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=VERBOSE_FORMAT if verbose else DEFAULT_FORMAT,
        stream=sys.stderr,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
