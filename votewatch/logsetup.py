import logging
import os

LOG_LEVEL = os.getenv('VOTEWATCH_LOG_LEVEL', 'INFO').upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s]: %(message)s"


def get_logger(name: str, level: str = LOG_LEVEL):
    """A stderr logger for process-level messages.  Safe to call repeatedly."""

    logger = logging.getLogger(f"votewatch.{name}")

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
        logger.setLevel(getattr(logging, level, logging.INFO))
        logger.propagate = False

    return logger
