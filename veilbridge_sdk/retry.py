"""
Error classification and retry with exponential backoff.
"""
import logging
import time
from typing import Callable, Optional, TypeVar

import requests

from .config import (
    DEFAULT_MAX_RETRIES, RETRY_BASE_DELAY, RETRY_MAX_DELAY,
    MESSAGE_RETRY_BASE_DELAY, MESSAGE_RETRY_MAX_DELAY,
)
from .exceptions import (
    ErrorCategory, PermanentFlowError, UserRejectedError, NetworkError,
    OperationTimeoutError, MessageNotAvailableError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_REJECTION_KEYWORDS = (
    "user rejected",
    "user denied",
    "rejected by user",
    "user cancelled",
    "user canceled",
    "action_rejected",
)

NETWORK_KEYWORDS = (
    "network",
    "connection",
    "econnrefused",
    "econnreset",
    "etimedout",
    "fetch failed",
    "failed to fetch",
)

TIMEOUT_KEYWORDS = ("timeout", "timed out")

# EIP-1193 code for a request the user declined in their wallet
USER_REJECTED_CODE = 4001


def _text(error: BaseException) -> str:
    return str(error).lower()


def is_user_rejection(error: BaseException) -> bool:
    """Whether the error means the user declined to sign."""
    if isinstance(error, UserRejectedError):
        return True
    if getattr(error, "code", None) == USER_REJECTED_CODE:
        return True
    text = _text(error)
    return any(keyword in text for keyword in USER_REJECTION_KEYWORDS)


def is_network_error(error: BaseException) -> bool:
    if isinstance(error, (NetworkError, requests.ConnectionError, ConnectionError)):
        return True
    text = _text(error)
    return any(keyword in text for keyword in NETWORK_KEYWORDS)


def is_timeout_error(error: BaseException) -> bool:
    if isinstance(error, (OperationTimeoutError, requests.Timeout, TimeoutError)):
        return True
    text = _text(error)
    return any(keyword in text for keyword in TIMEOUT_KEYWORDS)


def classify_error(error: BaseException) -> ErrorCategory:
    """
    Place an error in one category.

    Permanent business errors win over everything else, then user
    rejections, then the transient kinds. Anything unrecognised is GENERIC.
    """
    if isinstance(error, PermanentFlowError):
        return ErrorCategory.PERMANENT
    if is_user_rejection(error):
        return ErrorCategory.USER_REJECTED
    if isinstance(error, MessageNotAvailableError):
        return ErrorCategory.MESSAGE_NOT_AVAILABLE
    if is_network_error(error):
        return ErrorCategory.NETWORK
    if is_timeout_error(error):
        return ErrorCategory.TIMEOUT
    return ErrorCategory.GENERIC


def is_retriable(error: BaseException, category: Optional[ErrorCategory] = None) -> bool:
    category = category or classify_error(error)
    if category in (ErrorCategory.PERMANENT, ErrorCategory.USER_REJECTED):
        return False
    return bool(getattr(error, "is_retriable", True))


def retry_delay(attempt: int, category: ErrorCategory) -> float:
    """Backoff before the attempt after ``attempt`` (1-based), in seconds."""
    if category == ErrorCategory.MESSAGE_NOT_AVAILABLE:
        base, cap = MESSAGE_RETRY_BASE_DELAY, MESSAGE_RETRY_MAX_DELAY
    else:
        base, cap = RETRY_BASE_DELAY, RETRY_MAX_DELAY
    return min(base * 2 ** (attempt - 1), cap)


def execute_with_retry(
    fn: Callable[[], T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    operation: str = "operation",
) -> T:
    """
    Call ``fn`` until it succeeds, retrying transient failures.

    Non-retriable errors (permanent business errors, user rejections, flow
    errors wrapping either) are raised immediately. After the last attempt
    the most recent error is raised.

    Args:
        fn: Zero-argument callable to run
        max_retries: Total number of attempts
        operation: Name used in log messages

    Returns:
        The return value of ``fn``
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    last_error: Optional[BaseException] = None
    for attempt in range(1, max_retries + 1):
        try:
            logger.info(f"{operation} attempt {attempt}/{max_retries}")
            return fn()
        except Exception as e:
            category = classify_error(e)
            if not is_retriable(e, category):
                logger.info(f"{operation} failed with non-retriable {category.value} error: {e}")
                raise
            last_error = e
            logger.warning(f"{operation} attempt {attempt} failed ({category.value}): {e}")
            if attempt < max_retries:
                delay = retry_delay(attempt, category)
                logger.info(f"Retrying {operation} in {delay:g}s...")
                time.sleep(delay)

    raise last_error
