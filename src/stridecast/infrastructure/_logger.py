"""
Console logging setup for stridecast.

Library modules only ever call ``logging.getLogger(__name__)``; nothing is
printed unless an application (or a debugging session) calls
`setup_logger`, which attaches a colored console handler to the package
logger at the level configured by ``STRIDECAST_LOG_LEVEL`` / ``DEBUG``.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from ._config import get_config

PACKAGE_LOGGER_NAME = "stridecast"


class ColorFormatter(logging.Formatter):
    """
    A logging formatter that colors each record by severity level.

    Examples
    --------
    >>> handler = logging.StreamHandler()
    >>> handler.setFormatter(ColorFormatter())
    """

    grey = "\x1b[38;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    cyan = "\x1b[36;20m"
    green = "\x1b[32;20m"
    reset = "\x1b[0m"

    FORMATS = {
        logging.DEBUG: cyan,
        logging.INFO: green,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red,
    }

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the record as a colored line.

        Parameters
        ----------
        record : logging.LogRecord
            The record to format.

        Returns
        -------
        str
            The formatted message wrapped in ANSI color codes.
        """
        color = self.FORMATS.get(record.levelno, self.grey)
        formatter = logging.Formatter(
            f"{color}%(asctime)s - %(name)s - %(levelname)s - %(message)s{self.reset}"
        )
        return formatter.format(record)


def setup_logger(name: Optional[str] = None, level: Optional[int] = None) -> logging.Logger:
    """
    Configure a logger with colored console output.

    Calling this twice for the same logger does not attach a second handler.

    Parameters
    ----------
    name : str, optional
        Logger name. Defaults to the package logger ``"stridecast"``.
    level : int, optional
        Logging level. Defaults to the configured level (see
        `stridecast.infrastructure._config`).

    Returns
    -------
    logging.Logger
        The configured logger.
    """
    logger = logging.getLogger(name or PACKAGE_LOGGER_NAME)
    logger.setLevel(get_config().log_level if level is None else level)

    if not any(getattr(h, "_stridecast_handler", False) for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ColorFormatter())
        console_handler._stridecast_handler = True  # type: ignore[attr-defined]
        logger.addHandler(console_handler)

    return logger
