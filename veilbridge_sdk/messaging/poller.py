"""
Background checks of whether pending deposits can be executed on L1.
"""
import logging
import threading
from typing import Callable, Dict, Optional

from .._rate_limited_log import rate_limited_log
from ..busy import BusyGuard, BusyKey
from ..chain.interfaces import L2Node
from ..config import PROOF_POLLER_INTERVAL, PROOF_STATUS_CHECK
from ..crypto import compute_deposit_message_hash
from ..models import DepositProofCheckResult, DepositProofStatus, PendingDeposit
from ..storage import PendingDepositLedger
from ..types import L1Context
from .proof import wait_for_l2_to_l1_proof

logger = logging.getLogger(__name__)


def check_deposit_proof_status(pending: PendingDeposit, l1: L1Context, node: L2Node) -> DepositProofCheckResult:
    """
    Report how far a pending deposit is from L1 execution.

    Makes one short proof lookup and, when the proof exists, one checkpoint
    query. Never raises; failures come back as ``status=error``.
    """
    try:
        addresses = l1.addresses
        rollup_version = l1.chain.outbox_version(addresses.outbox)
        chain_id = l1.chain.chain_id()
        message_hash = compute_deposit_message_hash(pending, addresses.portal, rollup_version, chain_id)

        start_block = pending.l2_block_number or node.get_block_number()
        proof = wait_for_l2_to_l1_proof(
            node,
            message_hash,
            start_block,
            max_wait=PROOF_STATUS_CHECK.max_wait,
            poll_interval=PROOF_STATUS_CHECK.poll_interval,
            l1=l1.chain,
        )
        if not proof.success:
            return DepositProofCheckResult(
                status=DepositProofStatus.WAITING_FOR_PROOF,
                message="L2→L1 message proof not yet available",
            )

        if l1.chain.is_checkpoint_proven(addresses.outbox, proof.l2_block_number):
            return DepositProofCheckResult(
                status=DepositProofStatus.READY,
                message=f"Deposit ready for L1 execution (L2 block {proof.l2_block_number} proven)",
                l2_block_number=proof.l2_block_number,
            )
        return DepositProofCheckResult(
            status=DepositProofStatus.WAITING_FOR_CHECKPOINT,
            message=f"L2 block {proof.l2_block_number} not yet checkpointed on L1",
            l2_block_number=proof.l2_block_number,
        )
    except Exception as e:
        logger.error(f"Error checking proof status for {pending.intent_id[:16]}...: {e}")
        return DepositProofCheckResult(status=DepositProofStatus.ERROR, message=f"Proof check failed: {e}")


class DepositProofPoller:
    """
    Re-checks every pending deposit on a fixed interval from a daemon thread.

    A cycle is skipped while a deposit is being executed or finalized so the
    poller never competes with the flow for the same proof.
    """

    def __init__(
        self,
        l1: L1Context,
        node: L2Node,
        ledger: PendingDepositLedger,
        busy: BusyGuard,
        interval: float = PROOF_POLLER_INTERVAL,
        on_update: Optional[Callable[[Dict[str, DepositProofCheckResult]], None]] = None,
    ):
        self.l1 = l1
        self.node = node
        self.ledger = ledger
        self.busy = busy
        self.interval = interval
        self.on_update = on_update
        self.statuses: Dict[str, DepositProofCheckResult] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> Optional[Dict[str, DepositProofCheckResult]]:
        """
        Check every pending deposit once.

        Returns:
            Status per intent id, or None when the cycle was skipped
        """
        if self.busy.is_any_busy(BusyKey.EXECUTING_DEPOSIT, BusyKey.FINALIZING):
            rate_limited_log("Deposit execution in progress, skipping proof poll", "debug", logger)
            return None

        statuses = {}
        for pending in self.ledger.list():
            statuses[pending.intent_id] = check_deposit_proof_status(pending, self.l1, self.node)
        self.statuses = statuses
        if self.on_update is not None:
            self.on_update(statuses)
        return statuses

    def _run(self) -> None:
        while True:
            try:
                self.poll_once()
            except Exception as e:
                logger.error(f"Deposit proof poll failed: {e}")
            if self._stop.wait(self.interval):
                break

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="deposit-proof-poller", daemon=True)
        self._thread.start()
        logger.info(f"Deposit proof poller started (every {self.interval:g}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
