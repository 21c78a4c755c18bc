"""
Progress reporting for flows.
"""
import logging
import threading
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class FlowObserver(Protocol):
    """Receives step transitions and log lines from a running flow"""

    def on_step(self, step: int, total: int, label: str) -> None:
        ...

    def on_log(self, message: str, level: str = "info") -> None:
        ...


class LoggingObserver:
    """Observer that forwards everything to :mod:`logging`."""

    def __init__(self, logger_instance: Optional[logging.Logger] = None):
        self.logger = logger_instance or logging.getLogger("veilbridge_sdk.flows")

    def on_step(self, step: int, total: int, label: str) -> None:
        self.logger.info(f"[{step}/{total}] {label}")

    def on_log(self, message: str, level: str = "info") -> None:
        self.logger.log(_LEVELS.get(level, logging.INFO), message)


class OperationState:
    """
    Snapshot of the flow currently running in this process.

    Flows update it while they run and always reset it on exit, so a UI or
    CLI polling it never sees a stale step after a failure.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.operation: Optional[str] = None
            self.step = 0
            self.total_steps = 0
            self.intent_id: Optional[str] = None
            self.status = "idle"
            self.error: Optional[str] = None

    def start(self, operation: str, total_steps: int) -> None:
        with self._lock:
            self.operation = operation
            self.step = 0
            self.total_steps = total_steps
            self.intent_id = None
            self.status = "pending"
            self.error = None

    def set_step(self, step: int) -> None:
        with self._lock:
            self.step = step

    def set_intent_id(self, intent_id: str) -> None:
        with self._lock:
            self.intent_id = intent_id

    def set_status(self, status: str, error: Optional[str] = None) -> None:
        with self._lock:
            self.status = status
            self.error = error

    @property
    def is_idle(self) -> bool:
        return self.operation is None
