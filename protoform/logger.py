"""Console logging for protoform."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "protoform"


def configure_logging(level: int | str = logging.WARNING, console: Console | None = None) -> logging.Logger:
    """Attach a rich handler to the package logger and set its level.

    Calling this again only changes the level.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = level.upper()
    logger.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            rich_tracebacks=True,
            show_time=False,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    return logger
