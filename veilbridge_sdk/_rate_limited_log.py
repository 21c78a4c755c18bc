"""
Thread-safe rate-limited logging.

Polling loops and the background proof poller repeat the same status line
every few seconds; this keeps each distinct line to one emission per window.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

# One entry per (level, message); entries expire after the default window
_seen = TTLCache(maxsize=256, ttl=60)
_seen_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "info",
    logger_instance: Optional[logging.Logger] = None,
) -> bool:
    """
    Log a message unless the same message was logged within the last minute.

    Args:
        message: Message to log
        level: Log level name (debug, info, warning, error)
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.info)
    key = f"{log_instance.name}:{level}:{message}"

    with _seen_lock:
        if key in _seen:
            return False
        _seen[key] = True
    log_method(message)
    return True


def reset_rate_limits() -> None:
    """Forget every suppressed message (used by tests)."""
    with _seen_lock:
        _seen.clear()
