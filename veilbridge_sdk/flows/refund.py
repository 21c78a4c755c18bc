"""
Claim back a position whose withdrawal was never executed on L1.
"""
import logging
from typing import Optional

from ..config import DEFAULT_MAX_RETRIES
from ..exceptions import (
    ClaimRefundFlowError, InvalidParameterError, NotPendingWithdrawError, WithdrawDeadlineNotExpiredError,
)
from ..models import ClaimRefundResult, IntentStatus
from ..observer import FlowObserver, OperationState
from ..retry import execute_with_retry
from ..types import FlowStores, L1Context, L2Context
from ._base import FlowRun

logger = logging.getLogger(__name__)

CLAIM_REFUND_TOTAL_STEPS = 2

_DEADLINE_PATTERNS = ("Deadline has not expired", "Deadline not reached")
_NOT_PENDING_PATTERNS = ("not in pending withdraw", "Position is not pending")


def get_claim_refund_step_count() -> int:
    return CLAIM_REFUND_TOTAL_STEPS


def execute_claim_refund(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    nonce: str,
    deadline: int,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
) -> ClaimRefundResult:
    """
    Restore a PendingWithdraw position once its withdrawal deadline is reached.

    The deadline check is inclusive (``current >= deadline``), unlike
    cancelling a deposit. The contract re-creates the note under a nonce
    derived from the original nonce and the owner; that value cannot be
    computed here, so ``new_nonce`` is a placeholder for display only.

    Args:
        l1: L1 chain (timestamp source)
        l2: L2 wrapper contract client
        stores: Local stores
        nonce: Nonce of the position note being refunded
        deadline: Withdrawal deadline (unix seconds)

    Raises:
        NotPendingWithdrawError: If the position is not pending withdrawal
        WithdrawDeadlineNotExpiredError: If the deadline has not been reached
        ClaimRefundFlowError: For unclassified failures
    """
    if l2.contract is None:
        raise InvalidParameterError("L2 context has no privacy wrapper contract client")

    position = stores.positions.get(nonce)
    if position is not None and position.status != IntentStatus.PENDING_WITHDRAW:
        raise NotPendingWithdrawError(nonce, position.status.value)

    with FlowRun("claim-refund", CLAIM_REFUND_TOTAL_STEPS, ClaimRefundFlowError, observer, state) as run:
        run.set_intent_id(nonce)

        run.step_to(1, "Check withdrawal deadline")
        current_time = l1.chain.block_timestamp()
        if current_time < deadline:
            raise WithdrawDeadlineNotExpiredError(deadline, current_time)
        run.log(f"Withdrawal deadline {deadline} reached (L1 time {current_time})")

        run.step_to(2, "Claim refund on L2")
        try:
            result = l2.contract.claim_refund(nonce, current_time)
        except Exception as e:
            text = str(e)
            if any(pattern in text for pattern in _DEADLINE_PATTERNS):
                raise WithdrawDeadlineNotExpiredError(deadline, current_time) from e
            if any(pattern in text for pattern in _NOT_PENDING_PATTERNS):
                raise NotPendingWithdrawError(nonce) from e
            raise
        run.log(f"Refund claimed (tx {result.tx_hash})", "success")

        shares = 0
        if position is not None:
            shares = position.shares
            stores.positions.upsert(position.model_copy(
                update={"status": IntentStatus.CONFIRMED, "withdraw_deadline": None}
            ))

        return ClaimRefundResult(
            original_nonce=nonce,
            new_nonce=f"refund:{nonce[:16]}",
            shares=shares,
            tx_hash=result.tx_hash,
        )


def execute_claim_refund_with_retry(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    nonce: str,
    deadline: int,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> ClaimRefundResult:
    return execute_with_retry(
        lambda: execute_claim_refund(l1, l2, stores, nonce, deadline, observer, state),
        max_retries=max_retries,
        operation="claim-refund",
    )
