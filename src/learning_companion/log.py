"""Logging setup."""
import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "learning_companion"


def setup_logging(level: str = "WARNING") -> logging.Logger:
    """Attach a RichHandler writing to stderr. Safe to call more than once."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    if logger.handlers:
        return logger
    handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    return logger
