"""
Flow orchestrators.

Each flow takes explicit ``(l1, l2, stores, ...)`` contexts, reports progress
through an optional observer and returns a result model or raises a typed
error. ``*_with_retry`` variants wrap a flow in the retry executor.
"""
from .bridge import execute_bridge_flow, execute_bridge_flow_with_retry, get_bridge_step_count
from .deposit import (
    execute_deposit_phase1,
    execute_deposit_phase2,
    execute_deposit_flow,
    execute_deposit_phase1_with_retry,
    execute_deposit_phase2_with_retry,
    execute_deposit_flow_with_retry,
    get_deposit_phase1_step_count,
    get_deposit_phase2_step_count,
    get_deposit_step_count,
)
from .withdraw import execute_withdraw_flow, execute_withdraw_flow_with_retry, get_withdraw_step_count
from .cancel import execute_cancel_deposit, execute_cancel_deposit_with_retry, get_cancel_deposit_step_count
from .refund import execute_claim_refund, execute_claim_refund_with_retry, get_claim_refund_step_count
from .claim import execute_token_claim, execute_token_claim_with_retry, execute_bridge_claim, get_claim_step_count

__all__ = [
    "execute_bridge_flow",
    "execute_bridge_flow_with_retry",
    "get_bridge_step_count",
    "execute_deposit_phase1",
    "execute_deposit_phase2",
    "execute_deposit_flow",
    "execute_deposit_phase1_with_retry",
    "execute_deposit_phase2_with_retry",
    "execute_deposit_flow_with_retry",
    "get_deposit_phase1_step_count",
    "get_deposit_phase2_step_count",
    "get_deposit_step_count",
    "execute_withdraw_flow",
    "execute_withdraw_flow_with_retry",
    "get_withdraw_step_count",
    "execute_cancel_deposit",
    "execute_cancel_deposit_with_retry",
    "get_cancel_deposit_step_count",
    "execute_claim_refund",
    "execute_claim_refund_with_retry",
    "get_claim_refund_step_count",
    "execute_token_claim",
    "execute_token_claim_with_retry",
    "execute_bridge_claim",
    "get_claim_step_count",
]
