import logging
import os

from rich.logging import RichHandler


class CenteredFormatter(logging.Formatter):
    """Pads logger names to the widest name seen so far, centered."""

    longest_name_length = 14

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        record.name = record.name.center(CenteredFormatter.longest_name_length)
        return super().format(record)


def _resolve_level() -> int:
    """WARUNG_LOG_LEVEL wins; otherwise DEBUG=1 switches to debug output."""
    name = os.getenv("WARUNG_LOG_LEVEL", "").upper()
    if name in logging.getLevelNamesMapping():
        return logging.getLevelNamesMapping()[name]
    return logging.DEBUG if os.getenv("DEBUG") else logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Creates and returns a logger configured with RichHandler for rich output.
    """
    logger = logging.getLogger(name or "warung")
    log_level = _resolve_level()
    logger.setLevel(log_level)

    if not logger.handlers:
        console_handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        console_handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
        console_handler.setLevel(log_level)
        logger.addHandler(console_handler)

        logger.propagate = False
        logger.debug(f"Logger for '{logger.name}' initialized with RichHandler.")

    return logger
