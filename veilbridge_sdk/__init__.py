"""
VeilBridge SDK - client-side orchestration of private cross-chain intents.
"""
from .version import __version__
from .busy import BusyGuard, BusyKey
from .config import BridgeSettings, WaitSettings
from .crypto import (
    FieldHasher, KeccakFieldHasher, SecretPair, generate_secret_pair, compute_owner_hash, compute_salt,
    compute_content_hash, compute_deposit_content_hash, compute_withdraw_content_hash,
    compute_l2_to_l1_message_hash, compute_leaf_id,
)
from .exceptions import (
    ErrorCategory, VeilBridgeError, TransactionError, RpcError, ProofUnavailableError,
    CheckpointNotProvenError, PermanentFlowError, InvalidParameterError, InsufficientBalanceError,
    DeadlineNotExpiredError, WithdrawDeadlineNotExpiredError, NetAmountMismatchError,
    PositionNotFoundError, PartialWithdrawError, NotPendingWithdrawError, SecretHashMismatchError,
    SecretNotFoundError, UserRejectedError, NetworkError, OperationTimeoutError,
    MessageNotAvailableError, FlowError, BridgeFlowError, DepositFlowError, WithdrawFlowError,
    CancelDepositFlowError, ClaimRefundFlowError, ClaimFlowError,
)
from .fees import calculate_fee, calculate_net_amount, format_amount, parse_amount
from .models import IntentStatus, PendingDeposit, Position, PendingBridge
from .observer import FlowObserver, LoggingObserver, OperationState
from .retry import classify_error, execute_with_retry
from .types import L1Addresses, L1Context, L2Context, FlowStores
from .flows import (
    execute_bridge_flow,
    execute_deposit_phase1,
    execute_deposit_phase2,
    execute_deposit_flow,
    execute_withdraw_flow,
    execute_cancel_deposit,
    execute_claim_refund,
    execute_token_claim,
    execute_bridge_claim,
)

__all__ = [
    "__version__",
    "BusyGuard",
    "BusyKey",
    "BridgeSettings",
    "WaitSettings",
    "FieldHasher",
    "KeccakFieldHasher",
    "SecretPair",
    "generate_secret_pair",
    "compute_owner_hash",
    "compute_salt",
    "compute_content_hash",
    "compute_deposit_content_hash",
    "compute_withdraw_content_hash",
    "compute_l2_to_l1_message_hash",
    "compute_leaf_id",
    "ErrorCategory",
    "VeilBridgeError",
    "TransactionError",
    "RpcError",
    "ProofUnavailableError",
    "CheckpointNotProvenError",
    "PermanentFlowError",
    "InvalidParameterError",
    "InsufficientBalanceError",
    "DeadlineNotExpiredError",
    "WithdrawDeadlineNotExpiredError",
    "NetAmountMismatchError",
    "PositionNotFoundError",
    "PartialWithdrawError",
    "NotPendingWithdrawError",
    "SecretHashMismatchError",
    "SecretNotFoundError",
    "UserRejectedError",
    "NetworkError",
    "OperationTimeoutError",
    "MessageNotAvailableError",
    "FlowError",
    "BridgeFlowError",
    "DepositFlowError",
    "WithdrawFlowError",
    "CancelDepositFlowError",
    "ClaimRefundFlowError",
    "ClaimFlowError",
    "calculate_fee",
    "calculate_net_amount",
    "format_amount",
    "parse_amount",
    "IntentStatus",
    "PendingDeposit",
    "Position",
    "PendingBridge",
    "FlowObserver",
    "LoggingObserver",
    "OperationState",
    "classify_error",
    "execute_with_retry",
    "L1Addresses",
    "L1Context",
    "L2Context",
    "FlowStores",
    "execute_bridge_flow",
    "execute_deposit_phase1",
    "execute_deposit_phase2",
    "execute_deposit_flow",
    "execute_withdraw_flow",
    "execute_cancel_deposit",
    "execute_claim_refund",
    "execute_token_claim",
    "execute_bridge_claim",
]
