"""
Logging for cartengine.

Usage:
    from cartengine.logging import cart_ref, get_logger
    logger = get_logger(__name__)

    logger.warning(f"Rates handler failed for cart {cart_ref(record.store_id, record.partition)}")

Store ids, variant ids and coupon codes come from the host application,
so they pass through cart_ref() / sanitize_*_for_logging() before they
reach a log line.
"""

import logging
import os
import sys
from functools import cache
from typing import Any, Optional

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

# Ids are logged whole; only pathological ones are clipped
MAX_ID_LENGTH = 64

_ESCAPES = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": None})


def _log_level() -> int:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _configure_root_logger() -> None:
    """Attach a stdout handler unless the host application already has one."""
    root = logging.getLogger()
    if root.handlers:
        return

    level = _log_level()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    simple = os.environ.get("CART_LOG_SIMPLE") == "1"
    handler.setFormatter(logging.Formatter(_FORMAT_SIMPLE if simple else _FORMAT))
    root.addHandler(handler)

    # Rate and submit handlers talk HTTP; keep transport chatter out of cart logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _clip(value: str, max_length: int) -> str:
    if len(value) <= max_length:
        return value
    return value[:max_length] + "..."


def _escape(value: Any) -> str:
    """Escape line breaks and drop NULs so host input cannot forge log lines (CWE-117)."""
    return str(value).translate(_ESCAPES)


def sanitize_id_for_logging(id_value: Optional[str], max_length: int = MAX_ID_LENGTH) -> str:
    """
    Escape a store or variant id for logging.

    Ids are kept whole (DEFAULT_STORE stays DEFAULT_STORE) so log lines can
    be matched to storage keys; only ids longer than max_length are clipped.
    """
    if not id_value:
        return "N/A"
    return _clip(_escape(id_value), max_length)


def sanitize_string_for_logging(value: Optional[str], max_length: int = 50) -> str:
    """Escape and clip free text such as coupon codes."""
    if not value:
        return "N/A"
    return _clip(_escape(value), max_length)


def cart_ref(store_id: Optional[str], partition: Any = None) -> str:
    """
    Reference to one persisted cart, e.g. ``DEFAULT_STORE/PUBLIC``.

    partition may be a Partition, its string value, or None to log the
    store id alone.
    """
    ref = sanitize_id_for_logging(store_id)
    if partition is None:
        return ref
    return f"{ref}/{_escape(getattr(partition, 'value', partition))}"


__all__ = [
    "MAX_ID_LENGTH",
    "cart_ref",
    "get_logger",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
