"""
Logging setup for the storefront.

Usage:
    from logging_config import get_logger
    logger = get_logger(__name__)
"""
import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _get_log_level() -> int:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _configure_root_logger() -> None:
    """Attach a stdout handler to the root logger unless one is already set."""
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(_get_log_level())
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_get_log_level())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    # Stripe's client logs every request at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def sanitize_string_for_logging(value, max_length: int = 50) -> str:
    """
    Make a user-supplied value safe to put in a log line.

    Newlines, carriage returns and tabs are escaped and null bytes dropped
    so a submitted value cannot forge extra log entries. Long values are
    truncated to max_length.
    """
    if value is None or value == "":
        return "N/A"
    safe_value = (
        str(value)
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )
    if len(safe_value) <= max_length:
        return safe_value
    return safe_value[:max_length] + "..."


__all__ = ["LOG_FORMAT", "get_logger", "sanitize_string_for_logging"]
