"""Logging configuration for the CLI and the API server.

Call ``setup()`` once at process start to get ISO-8601 timestamps on
every log line. Chatty third-party loggers stay at WARNING unless
verbose output is requested.
"""

from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_NOISY_LOGGERS = ("yfinance", "urllib3", "peewee")


def setup(*, verbose: bool = False) -> None:
    """Configure the root logger with timestamped output.

    Args:
        verbose: If True, set level to DEBUG and let third-party
            loggers through; otherwise INFO.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=_LOG_FORMAT,
        datefmt=_DATE_FORMAT,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
