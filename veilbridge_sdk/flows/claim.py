"""
Claiming private L2 tokens from an L1→L2 message.

:func:`execute_token_claim` completes a withdrawal (or a bridge) once its
message is consumable. :func:`execute_bridge_claim` claims a bridge found by
:func:`~veilbridge_sdk.messaging.scan_pending_bridges` and reports failures
in its result instead of raising.
"""
import logging
from typing import Optional, Union

from ..config import DEFAULT_MAX_RETRIES
from ..crypto import to_field
from ..exceptions import ClaimFlowError, InvalidParameterError, MessageNotAvailableError, SecretHashMismatchError
from ..fees import format_amount
from ..messaging.proof import wait_for_l1_to_l2_claimable
from ..models import BridgeClaimResult, ClaimResult, PendingBridge, PendingBridgeStatus
from ..observer import FlowObserver, OperationState
from ..retry import execute_with_retry, is_user_rejection
from ..types import FlowStores, L1Context, L2Context
from ._base import FlowRun

logger = logging.getLogger(__name__)

CLAIM_TOTAL_STEPS = 2

_SECRET_MISMATCH_PATTERNS = ("secret", "hash", "mismatch", "invalid proof")


def get_claim_step_count() -> int:
    return CLAIM_TOTAL_STEPS


def _is_secret_mismatch(error: Exception) -> bool:
    text = str(error).lower()
    return any(pattern in text for pattern in _SECRET_MISMATCH_PATTERNS)


def execute_token_claim(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    amount: int,
    secret: Union[int, str],
    message_leaf_index: int,
    message_key: Optional[str] = None,
    position_intent_id: Optional[str] = None,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
) -> ClaimResult:
    """
    Claim tokens deposited to L2 by an L1→L2 message.

    Args:
        l1: L1 chain, used for mining nudges while waiting
        l2: L2 node and bridged token client
        stores: Local stores
        amount: Amount carried by the message
        secret: Claim secret (int or hex string)
        message_leaf_index: Leaf index of the message in the L1→L2 tree
        message_key: Message leaf; enables the precise readiness wait and
            removal of the stored secret
        position_intent_id: Position to remove once the withdrawal completes

    Raises:
        MessageNotAvailableError: If the message is not consumable yet
        SecretHashMismatchError: If the secret does not match the message
        ClaimFlowError: For unclassified failures
    """
    if l2.bridged_token is None:
        raise InvalidParameterError("L2 context has no bridged token client")
    if amount <= 0:
        raise InvalidParameterError(f"Claim amount must be positive, got {amount}")

    with FlowRun("claim", CLAIM_TOTAL_STEPS, ClaimFlowError, observer, state) as run:
        if position_intent_id:
            run.set_intent_id(position_intent_id)

        run.step_to(1, "Wait for L1→L2 message")
        if not wait_for_l1_to_l2_claimable(l1.chain, l2.node, message_key):
            raise MessageNotAvailableError(message_key)

        run.step_to(2, "Claim tokens on L2")
        try:
            result = l2.bridged_token.claim_private(amount, to_field(secret), message_leaf_index)
        except Exception as e:
            if is_user_rejection(e):
                raise
            if _is_secret_mismatch(e):
                raise SecretHashMismatchError() from e
            raise MessageNotAvailableError(message_key) from e
        run.log(f"Claimed {format_amount(amount)} tokens (tx {result.tx_hash})", "success")

        if message_key:
            stores.secrets.remove(message_key)
        if position_intent_id:
            stores.positions.remove(position_intent_id)

        return ClaimResult(amount=amount, tx_hash=result.tx_hash)


def execute_token_claim_with_retry(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    amount: int,
    secret: Union[int, str],
    message_leaf_index: int,
    message_key: Optional[str] = None,
    position_intent_id: Optional[str] = None,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> ClaimResult:
    return execute_with_retry(
        lambda: execute_token_claim(
            l1, l2, stores, amount, secret, message_leaf_index,
            message_key, position_intent_id, observer, state,
        ),
        max_retries=max_retries,
        operation="claim",
    )


def execute_bridge_claim(l2: L2Context, stores: FlowStores, bridge: PendingBridge) -> BridgeClaimResult:
    """
    Claim a scanned pending bridge.

    Never raises; every failure is returned as ``success=False`` with a
    readable error.
    """
    if not bridge.secret:
        return BridgeClaimResult(
            success=False,
            error="Secret not found in bridge data - cannot claim without the original secret",
        )
    if bridge.leaf_index is None:
        return BridgeClaimResult(success=False, error="Leaf index not available - message may not be ready yet")
    if bridge.status != PendingBridgeStatus.READY:
        return BridgeClaimResult(
            success=False,
            error=f"Bridge is not ready to claim (status: {bridge.status.value})",
        )
    if l2.bridged_token is None:
        return BridgeClaimResult(success=False, error="No bridged token client configured")

    try:
        result = l2.bridged_token.claim_private(bridge.amount, to_field(bridge.secret), bridge.leaf_index)
    except Exception as e:
        logger.error(f"Bridge claim for {bridge.message_key[:18]}... failed: {e}")
        return BridgeClaimResult(success=False, error=str(e))

    logger.info(f"Claimed bridge {bridge.message_key[:18]}... (tx {result.tx_hash})")
    try:
        stores.secrets.remove(bridge.message_key)
    except Exception as e:
        logger.warning(f"Claimed, but removing the bridge secret failed: {e}")
    return BridgeClaimResult(success=True, tx_hash=result.tx_hash)
