"""
Per-operation busy flags.

A second request for an operation that is already running is dropped rather
than queued, which is what a user double-clicking a button expects.
"""
import logging
import threading
from enum import Enum
from typing import Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BusyKey(str, Enum):
    BRIDGING = "bridging"
    DEPOSITING = "depositing"
    EXECUTING_DEPOSIT = "executing_deposit"
    WITHDRAWING = "withdrawing"
    CANCELLING = "cancelling"
    FINALIZING = "finalizing"
    CLAIMING_REFUND = "claiming_refund"
    CLAIMING_BRIDGE = "claiming_bridge"
    CLAIMING_WITHDRAW_TOKENS = "claiming_withdraw_tokens"


class BusyGuard:
    """One non-blocking lock per :class:`BusyKey`."""

    def __init__(self):
        self._locks: Dict[BusyKey, threading.Lock] = {key: threading.Lock() for key in BusyKey}

    def run(self, key: BusyKey, fn: Callable[[], T]) -> Optional[T]:
        """
        Run ``fn`` unless the same operation is already in progress.

        The flag is released however ``fn`` exits; exceptions propagate.

        Args:
            key: Operation being started
            fn: Zero-argument callable doing the work

        Returns:
            The return value of ``fn``, or None if the operation was busy
        """
        key = BusyKey(key)
        lock = self._locks[key]
        if not lock.acquire(blocking=False):
            logger.debug(f"Skipping {key.value}: already in progress")
            return None
        try:
            return fn()
        finally:
            lock.release()

    def is_busy(self, key: BusyKey) -> bool:
        return self._locks[BusyKey(key)].locked()

    def is_any_busy(self, *keys: BusyKey) -> bool:
        """Whether any of ``keys`` (or any key at all, when none are given) is held."""
        candidates = keys or tuple(BusyKey)
        return any(self.is_busy(key) for key in candidates)
