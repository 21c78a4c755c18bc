"""
Tests for the pending-deposit proof status poller.
"""
import threading

import pytest

from veilbridge_sdk.busy import BusyGuard, BusyKey
from veilbridge_sdk.messaging import DepositProofPoller, check_deposit_proof_status
from veilbridge_sdk.models import DepositProofStatus
from tests.test_helpers import make_pending


@pytest.fixture
def pending():
    return make_pending()


class TestCheckDepositProofStatus:
    def test_ready(self, pending, l1, l2_node, fake_time):
        result = check_deposit_proof_status(pending, l1, l2_node)
        assert result.status == DepositProofStatus.READY
        assert result.l2_block_number == 12

    def test_waiting_for_checkpoint(self, pending, l1, l1_chain, l2_node, fake_time):
        l1_chain.checkpoint_proven = False
        result = check_deposit_proof_status(pending, l1, l2_node)
        assert result.status == DepositProofStatus.WAITING_FOR_CHECKPOINT

    def test_waiting_for_proof(self, pending, l1, l2_node, fake_time):
        l2_node.proof_available = False
        result = check_deposit_proof_status(pending, l1, l2_node)
        assert result.status == DepositProofStatus.WAITING_FOR_PROOF
        # One short lookup only
        assert fake_time.sleeps == [5]

    def test_errors_are_reported_not_raised(self, pending, l1, l1_chain, l2_node, fake_time):
        l1_chain.fail["is_checkpoint_proven"] = RuntimeError("rpc down")
        result = check_deposit_proof_status(pending, l1, l2_node)
        assert result.status == DepositProofStatus.ERROR
        assert "rpc down" in result.message

    def test_block_zero_falls_back_to_current_block(self, l1, l2_node, fake_time):
        l2_node.block_number = 12
        result = check_deposit_proof_status(make_pending(l2_block_number=0), l1, l2_node)
        assert result.status == DepositProofStatus.READY
        assert l2_node.witness_blocks == [12]


class TestDepositProofPoller:
    def test_poll_once_checks_every_pending_deposit(self, l1, l2_node, stores, fake_time):
        stores.pending_deposits.save(make_pending())
        stores.pending_deposits.save(make_pending(intent_id="0x" + "cd" * 32))
        updates = []
        poller = DepositProofPoller(l1, l2_node, stores.pending_deposits, BusyGuard(), on_update=updates.append)

        statuses = poller.poll_once()

        assert len(statuses) == 2
        assert all(s.status == DepositProofStatus.READY for s in statuses.values())
        assert updates == [statuses]
        assert poller.statuses == statuses

    @pytest.mark.parametrize("key", [BusyKey.EXECUTING_DEPOSIT, BusyKey.FINALIZING])
    def test_skips_while_deposit_executes(self, l1, l2_node, stores, key):
        stores.pending_deposits.save(make_pending())
        busy = BusyGuard()
        poller = DepositProofPoller(l1, l2_node, stores.pending_deposits, busy)

        assert busy.run(key, poller.poll_once) is None
        assert l2_node.witness_blocks == []

    def test_other_operations_do_not_block_polling(self, l1, l2_node, stores, fake_time):
        stores.pending_deposits.save(make_pending())
        busy = BusyGuard()
        poller = DepositProofPoller(l1, l2_node, stores.pending_deposits, busy)

        statuses = busy.run(BusyKey.BRIDGING, poller.poll_once)
        assert len(statuses) == 1

    def test_background_thread_polls_immediately(self, l1, l2_node, stores):
        stores.pending_deposits.save(make_pending())
        polled = threading.Event()
        poller = DepositProofPoller(
            l1, l2_node, stores.pending_deposits, BusyGuard(), interval=60, on_update=lambda _: polled.set()
        )

        poller.start()
        try:
            assert polled.wait(5)
            assert poller.running
        finally:
            poller.stop(timeout=5)
        assert not poller.running
