"""Logging setup for pgreport."""

import logging

from rich.console import Console
from rich.logging import RichHandler


LOGGER_NAME = "pgreport"


def configure_logging(debug: bool = False) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    Calling this more than once does not stack handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    return logger
