"""
Cross-chain message waits, proof polling and bridge recovery.
"""
from .proof import (
    wait_for_l2_to_l1_proof,
    wait_for_checkpoint_proven,
    wait_for_l1_to_l2_message,
    wait_for_l1_to_l2_claimable,
)
from .bridges import (
    check_message_readiness,
    check_bridge_message_ready,
    scan_pending_bridges,
    get_claimable_bridges,
)
from .poller import check_deposit_proof_status, DepositProofPoller

__all__ = [
    "wait_for_l2_to_l1_proof",
    "wait_for_checkpoint_proven",
    "wait_for_l1_to_l2_message",
    "wait_for_l1_to_l2_claimable",
    "check_message_readiness",
    "check_bridge_message_ready",
    "scan_pending_bridges",
    "get_claimable_bridges",
    "check_deposit_proof_status",
    "DepositProofPoller",
]
