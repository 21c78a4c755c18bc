"""
Step tracking, error translation and proof helpers shared by the flows.
"""
import logging
from typing import Optional, Type

from ..chain.interfaces import L2Node
from ..crypto import compute_l2_to_l1_message_hash, compute_leaf_id
from ..exceptions import (
    FlowError, PermanentFlowError, UserRejectedError, NetworkError, OperationTimeoutError,
    MessageNotAvailableError, ProofUnavailableError, CheckpointNotProvenError,
)
from ..messaging.proof import wait_for_l2_to_l1_proof, wait_for_checkpoint_proven
from ..models import MerkleProof
from ..observer import FlowObserver, LoggingObserver, OperationState
from ..retry import is_user_rejection, is_network_error, is_timeout_error
from ..types import L1Context

logger = logging.getLogger(__name__)

# Errors that already carry their category and are re-raised untouched
_TYPED_ERRORS = (
    FlowError,
    PermanentFlowError,
    UserRejectedError,
    NetworkError,
    OperationTimeoutError,
    MessageNotAvailableError,
)


class FlowRun:
    """
    One execution of a flow.

    Used as a context manager: it starts the operation state on entry, and on
    exit resets it and translates any escaping exception into the flow's
    typed error, tagged with the step that was running.
    """

    def __init__(
        self,
        operation: str,
        total_steps: int,
        error_cls: Type[FlowError],
        observer: Optional[FlowObserver] = None,
        state: Optional[OperationState] = None,
        step_offset: int = 0,
    ):
        self.operation = operation
        self.total_steps = total_steps
        self.error_cls = error_cls
        self.observer = observer or LoggingObserver()
        self.state = state or OperationState()
        self.step_offset = step_offset
        self.step = 0
        self.step_name = "init"

    def __enter__(self) -> "FlowRun":
        self.state.start(self.operation, self.total_steps)
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc is None:
                self.state.set_status("success")
            else:
                self.state.set_status("error", str(exc))
        finally:
            self.state.reset()

        if exc is None or not isinstance(exc, Exception):
            return False
        translated = self.translate(exc)
        if translated is exc:
            return False
        raise translated from exc

    def step_to(self, step: int, label: str) -> None:
        """Enter a numbered step (relative to this phase)."""
        self.step = step + self.step_offset
        self.step_name = label
        self.state.set_step(self.step)
        self.observer.on_step(self.step, self.total_steps, label)

    def log(self, message: str, level: str = "info") -> None:
        self.observer.on_log(message, level)

    def set_intent_id(self, intent_id: str) -> None:
        self.state.set_intent_id(intent_id)

    def translate(self, error: Exception) -> Exception:
        """Map an arbitrary failure onto the typed error hierarchy."""
        if isinstance(error, _TYPED_ERRORS):
            return error
        if is_user_rejection(error):
            return UserRejectedError(self.step, self.operation)
        if is_network_error(error):
            return NetworkError(self.step, self.operation, error)
        if is_timeout_error(error):
            return OperationTimeoutError(self.step, self.operation)
        return self.error_cls(self.step, self.step_name, error)


def prove_l2_to_l1_message(
    run: FlowRun,
    l1: L1Context,
    node: L2Node,
    l2_sender: str,
    content_hash: int,
    start_block: int,
) -> MerkleProof:
    """
    Obtain an outbox proof for an intent message and wait for its checkpoint.

    Args:
        run: Flow run used for progress reporting
        l1: L1 chain and contract addresses
        node: L2 node
        l2_sender: L2 contract that emitted the message
        content_hash: Content hash of the message
        start_block: L2 block of the request transaction

    Returns:
        Inclusion proof ready for the portal

    Raises:
        ProofUnavailableError: If no proof appears in time
        CheckpointNotProvenError: If the block is not proven on L1 in time
    """
    chain = l1.chain
    rollup_version = chain.outbox_version(l1.addresses.outbox)
    chain_id = chain.chain_id()
    run.log(f"Rollup version: {rollup_version}, chain id: {chain_id}")

    message_hash = compute_l2_to_l1_message_hash(
        l2_sender, l1.addresses.portal, content_hash, rollup_version, chain_id
    )

    run.log(f"L2 transaction in block {start_block}, waiting for message proof...")
    proof = wait_for_l2_to_l1_proof(node, message_hash, start_block, l1=chain)
    if not proof.success:
        raise ProofUnavailableError(f"Failed to get L2→L1 message proof: {proof.error}")
    run.log(f"Message proof obtained: block={proof.l2_block_number}, leaf index={proof.leaf_index}", "success")

    leaf_id = compute_leaf_id(proof.leaf_index, len(proof.sibling_path))
    if chain.has_message_been_consumed(l1.addresses.outbox, proof.l2_block_number, leaf_id):
        run.log("Message already consumed in the outbox")

    run.log("Waiting for the L2 block checkpoint to be proven on L1...")
    if not wait_for_checkpoint_proven(chain, l1.addresses.outbox, proof.l2_block_number):
        raise CheckpointNotProvenError(proof.l2_block_number)
    run.log("Checkpoint proven on L1", "success")

    return MerkleProof(
        l2_block_number=proof.l2_block_number,
        leaf_index=proof.leaf_index,
        sibling_path=proof.sibling_path,
    )
