"""
Cancel a deposit whose deadline passed before it was executed on L1.
"""
import logging
from typing import Optional

from ..config import DEFAULT_MAX_RETRIES
from ..exceptions import (
    CancelDepositFlowError, DeadlineNotExpiredError, InvalidParameterError, NetAmountMismatchError,
)
from ..fees import format_amount
from ..models import CancelDepositResult, IntentStatus
from ..observer import FlowObserver, OperationState
from ..retry import execute_with_retry
from ..types import FlowStores, L1Context, L2Context
from ._base import FlowRun

logger = logging.getLogger(__name__)

CANCEL_DEPOSIT_TOTAL_STEPS = 2


def get_cancel_deposit_step_count() -> int:
    return CANCEL_DEPOSIT_TOTAL_STEPS


def execute_cancel_deposit(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    intent_id: str,
    deadline: int,
    net_amount: int,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
) -> CancelDepositResult:
    """
    Cancel a pending deposit and get the net amount back on L2.

    Only allowed once the L1 timestamp is strictly past ``deadline``. The
    deadline is checked locally before the contract is called.

    Args:
        l1: L1 chain (timestamp source)
        l2: L2 wrapper contract client
        stores: Local stores
        intent_id: Intent id of the pending deposit
        deadline: Deposit deadline (unix seconds)
        net_amount: Net amount recorded in the intent

    Raises:
        DeadlineNotExpiredError: If the deadline has not passed
        NetAmountMismatchError: If the contract rejects ``net_amount``
        CancelDepositFlowError: For unclassified failures
    """
    if l2.contract is None:
        raise InvalidParameterError("L2 context has no privacy wrapper contract client")

    position = stores.positions.get(intent_id)
    if position is not None and position.status != IntentStatus.PENDING_DEPOSIT:
        raise InvalidParameterError(
            f"Only pending deposits can be cancelled (intent {intent_id[:16]}... is {position.status.value})"
        )

    with FlowRun("cancel-deposit", CANCEL_DEPOSIT_TOTAL_STEPS, CancelDepositFlowError, observer, state) as run:
        run.set_intent_id(intent_id)

        run.step_to(1, "Check deadline")
        current_time = l1.chain.block_timestamp()
        if current_time <= deadline:
            raise DeadlineNotExpiredError(deadline, current_time)
        run.log(f"Deadline {deadline} expired (L1 time {current_time})")

        run.step_to(2, "Cancel deposit on L2")
        try:
            result = l2.contract.cancel_deposit(intent_id, current_time, net_amount)
        except Exception as e:
            text = str(e)
            if "Deadline has not expired" in text:
                raise DeadlineNotExpiredError(deadline, current_time) from e
            if "Net amount mismatch" in text:
                pending = stores.pending_deposits.get(intent_id)
                expected = pending.net_amount if pending is not None else net_amount
                raise NetAmountMismatchError(expected, net_amount) from e
            raise
        run.log(f"Deposit cancelled, {format_amount(net_amount)} tokens refunded (tx {result.tx_hash})", "success")

        stores.positions.remove(intent_id)
        stores.pending_deposits.remove(intent_id)

        return CancelDepositResult(intent_id=intent_id, refunded_amount=net_amount, tx_hash=result.tx_hash)


def execute_cancel_deposit_with_retry(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    intent_id: str,
    deadline: int,
    net_amount: int,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> CancelDepositResult:
    return execute_with_retry(
        lambda: execute_cancel_deposit(l1, l2, stores, intent_id, deadline, net_amount, observer, state),
        max_retries=max_retries,
        operation="cancel-deposit",
    )
