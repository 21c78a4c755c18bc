"""
Exceptions for the VeilBridge SDK.

Errors fall into five categories, checked in this order by the retry
executor: permanent business-rule errors, user rejections, network errors,
timeouts and generic flow errors that wrap an unclassified cause.
"""
from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Classification used to decide whether an operation may be retried."""
    PERMANENT = "PERMANENT"
    USER_REJECTED = "USER_REJECTED"
    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    MESSAGE_NOT_AVAILABLE = "MESSAGE_NOT_AVAILABLE"
    GENERIC = "GENERIC"


class VeilBridgeError(Exception):
    """Base exception for all SDK errors."""

    @property
    def is_retriable(self) -> bool:
        return True


class TransactionError(VeilBridgeError):
    """Raised when an L1 transaction cannot be signed, sent or reverts."""
    pass


class RpcError(VeilBridgeError):
    """Raised when a JSON-RPC endpoint returns an error object."""

    def __init__(self, method: str, code: Optional[int], message: str):
        self.method = method
        self.code = code
        super().__init__(f"{method} failed ({code}): {message}")


class ProofUnavailableError(VeilBridgeError):
    """Raised when no L2→L1 message proof could be obtained in time."""
    pass


class CheckpointNotProvenError(VeilBridgeError):
    """Raised when the L2 block holding a message is not proven on L1 in time."""

    def __init__(self, l2_block_number: int):
        self.l2_block_number = l2_block_number
        super().__init__(
            f"Timed out waiting for L2 block {l2_block_number} checkpoint to be proven on L1"
        )


# ---------------------------------------------------------------------------
# Permanent errors: retrying cannot change the outcome
# ---------------------------------------------------------------------------

class PermanentFlowError(VeilBridgeError):
    """Business-rule failure that must be surfaced without retrying."""

    @property
    def is_retriable(self) -> bool:
        return False


class InvalidParameterError(PermanentFlowError, ValueError):
    """Raised when flow input fails local validation."""
    pass


class InsufficientBalanceError(PermanentFlowError):
    """Raised when the L1 token balance does not cover the requested amount."""

    def __init__(self, balance: int, required: int):
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient token balance: {balance} < {required}")


class DeadlineNotExpiredError(PermanentFlowError):
    """Raised when a deposit is cancelled before its deadline has passed."""

    def __init__(self, deadline: int, current_time: int):
        self.deadline = deadline
        self.current_time = current_time
        super().__init__(
            "Cannot cancel deposit: deadline has not expired. "
            f"Deadline: {deadline}, Current time: {current_time}. "
            f"Wait {deadline - current_time} more seconds."
        )


class WithdrawDeadlineNotExpiredError(PermanentFlowError):
    """Raised when a refund is claimed before the withdrawal deadline."""

    def __init__(self, deadline: int, current_time: int):
        self.deadline = deadline
        self.current_time = current_time
        super().__init__(
            "Cannot claim refund: withdrawal deadline has not expired. "
            f"Deadline: {deadline}, Current time: {current_time}. "
            f"Wait {deadline - current_time} more seconds."
        )


class NetAmountMismatchError(PermanentFlowError):
    """Raised when the refunded net amount does not match the stored intent."""

    def __init__(self, expected: int, provided: int):
        self.expected = expected
        self.provided = provided
        super().__init__(
            f"Net amount mismatch during cancel. Expected: {expected}, Provided: {provided}"
        )


class PositionNotFoundError(PermanentFlowError):
    """Raised when no position note exists for a withdrawal."""

    def __init__(self, intent_id: str):
        self.intent_id = intent_id
        super().__init__(f"No position found for intent ID: {intent_id}")


class PartialWithdrawError(PermanentFlowError):
    """Raised when the requested amount is not the whole position."""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Partial withdrawals not supported. Requested: {requested}, Available: {available}. "
            "Full withdrawal required - use the entire position amount."
        )


class NotPendingWithdrawError(PermanentFlowError):
    """Raised when a refund targets a position that is not pending withdrawal."""

    def __init__(self, nonce: str, actual_status: Optional[str] = None):
        self.nonce = nonce
        self.actual_status = actual_status
        status_info = f" (current status: {actual_status})" if actual_status else ""
        super().__init__(f"Position with nonce {nonce} is not in PendingWithdraw status{status_info}")


class SecretHashMismatchError(PermanentFlowError):
    """Raised when the claim secret does not hash to the committed secret hash."""

    def __init__(self):
        super().__init__("Secret hash mismatch - the provided secret does not match the expected hash")


class SecretNotFoundError(PermanentFlowError):
    """Raised when the secret needed to finalize an intent is missing."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No secret found for intent {key[:16]}... - cannot finalize deposit")


# ---------------------------------------------------------------------------
# Categorized transient / intentional errors
# ---------------------------------------------------------------------------

class UserRejectedError(VeilBridgeError):
    """Raised when the user declines to sign a transaction."""

    def __init__(self, step: int, operation: str):
        self.step = step
        self.operation = operation
        super().__init__(f"User rejected {operation} at step {step}")

    @property
    def is_retriable(self) -> bool:
        return False


class NetworkError(VeilBridgeError):
    """Raised when an RPC endpoint cannot be reached."""

    def __init__(self, step: int, operation: str, cause: Optional[BaseException] = None):
        self.step = step
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Network error during {operation} at step {step}{detail}")


class OperationTimeoutError(VeilBridgeError):
    """Raised when a bounded operation exceeds its time budget."""

    def __init__(self, step: int, operation: str, timeout: Optional[float] = None):
        self.step = step
        self.operation = operation
        self.timeout = timeout
        budget = f" after {timeout:g}s" if timeout is not None else ""
        super().__init__(f"Operation {operation} timed out at step {step}{budget}")


class MessageNotAvailableError(VeilBridgeError):
    """Raised when an L1→L2 message is not yet consumable on L2."""

    def __init__(self, message_leaf: Optional[str] = None):
        self.message_leaf = message_leaf
        leaf_info = f" (leaf: {message_leaf[:18]}...)" if message_leaf else ""
        super().__init__(f"L1→L2 message not yet available for claiming{leaf_info}")


# ---------------------------------------------------------------------------
# Flow errors carrying step context
# ---------------------------------------------------------------------------

class FlowError(VeilBridgeError):
    """Unclassified failure inside a flow, tagged with the failing step."""

    label = "Flow"

    def __init__(self, step: int, step_name: str, cause: Optional[BaseException] = None):
        self.step = step
        self.step_name = step_name
        self.cause = cause
        message = str(cause) if cause is not None else "Unknown error"
        super().__init__(f"{self.label} failed at step {step} ({step_name}): {message}")

    @property
    def is_retriable(self) -> bool:
        if self.cause is None:
            return True
        if isinstance(self.cause, (PermanentFlowError, UserRejectedError)):
            return False
        return getattr(self.cause, "is_retriable", True)


class BridgeFlowError(FlowError):
    label = "Bridge"


class DepositFlowError(FlowError):
    label = "Deposit"


class WithdrawFlowError(FlowError):
    label = "Withdraw"


class CancelDepositFlowError(FlowError):
    label = "Cancel deposit"


class ClaimRefundFlowError(FlowError):
    label = "Claim refund"


class ClaimFlowError(FlowError):
    label = "Claim"
