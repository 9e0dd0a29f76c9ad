import logging
import os

from rich.logging import RichHandler


class CenteredFormatter(logging.Formatter):
    """Pads logger names to the longest one seen so far so messages line up."""

    longest_name_length = 14

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        width = max(CenteredFormatter.longest_name_length, len(record.name))
        CenteredFormatter.longest_name_length = width
        record.name = record.name.center(width)
        return super().format(record)


def _log_level() -> int:
    if os.getenv("DEBUG") or os.getenv("MESTEJ_DEBUG"):
        return logging.DEBUG
    return logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Return the named logger, attaching a RichHandler the first time it is requested.
    """
    logger = logging.getLogger(name or "mestej")
    level = _log_level()
    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
        handler.setLevel(level)
        logger.addHandler(handler)

        logger.propagate = False
        logger.debug(f"Logger for '{logger.name}' initialized.")

    return logger
