"""
Tests for the bounded message waits.
"""
import pytest

from veilbridge_sdk.messaging.proof import (
    wait_for_l2_to_l1_proof, wait_for_checkpoint_proven, wait_for_l1_to_l2_message,
    wait_for_l1_to_l2_claimable, mine_quietly,
)
from tests.test_helpers import ADDRESSES, DEPOSIT_MESSAGE_LEAF, SIBLING_PATH, FakeL1Chain, FakeL2Node, NoWitnessL2Node


class GrowingL2Node(FakeL2Node):
    """Returns block numbers from a list, then keeps the last one."""

    def __init__(self, blocks):
        super().__init__()
        self.blocks = list(blocks)

    def get_block_number(self):
        if len(self.blocks) > 1:
            return self.blocks.pop(0)
        return self.blocks[0]


class FailingL2Node(FakeL2Node):
    def get_block_number(self):
        raise ConnectionError("node unreachable")


class TestL2ToL1Proof:
    def test_finds_proof_in_start_block(self, l2_node, fake_time):
        proof = wait_for_l2_to_l1_proof(l2_node, 0x1234, start_block=12)

        assert proof.success
        assert proof.l2_block_number == 12
        assert proof.leaf_index == 3
        assert proof.sibling_path == SIBLING_PATH
        assert fake_time.sleeps == []

    def test_finds_proof_in_later_block(self, l2_node, fake_time):
        l2_node.proof_block = 15

        proof = wait_for_l2_to_l1_proof(l2_node, 0x1234, start_block=12)
        assert proof.l2_block_number == 15
        assert l2_node.witness_blocks == [12, 13, 14, 15]

    def test_timeout_reports_failure(self, l2_node, fake_time):
        l2_node.proof_available = False
        l2_node.block_number = 14

        proof = wait_for_l2_to_l1_proof(l2_node, 0x1234, start_block=12, max_wait=10, poll_interval=5)

        assert not proof.success
        assert proof.error == "Timeout after 10s waiting for L2→L1 message proof"
        # Blocks already scanned are not queried again
        assert l2_node.witness_blocks == [12, 13, 14]

    def test_node_errors_do_not_abort(self, fake_time):
        proof = wait_for_l2_to_l1_proof(FailingL2Node(), 0x1234, start_block=1, max_wait=15, poll_interval=5)

        assert not proof.success
        assert fake_time.sleeps == [5, 5, 5]

    def test_waiting_for_proof_nudges_l1(self, l2_node, l1_chain, fake_time):
        l2_node.proof_available = False

        proof = wait_for_l2_to_l1_proof(
            l2_node, 0x1234, start_block=12, max_wait=60, poll_interval=5, l1=l1_chain, mine_interval=10
        )

        assert not proof.success
        assert l1_chain.mined == 3

    def test_found_proof_does_not_mine(self, l2_node, l1_chain, fake_time):
        assert wait_for_l2_to_l1_proof(l2_node, 0x1234, start_block=12, l1=l1_chain).success
        assert l1_chain.mined == 0


class TestCheckpoint:
    def test_proven(self, l1_chain, fake_time):
        assert wait_for_checkpoint_proven(l1_chain, ADDRESSES.outbox, 12)
        assert l1_chain.called("is_checkpoint_proven") == [(ADDRESSES.outbox, 12)]

    def test_timeout_nudges_l1(self, l1_chain, fake_time):
        l1_chain.checkpoint_proven = False

        assert not wait_for_checkpoint_proven(
            l1_chain, ADDRESSES.outbox, 12, max_wait=30, poll_interval=5, mine_interval=10
        )
        assert l1_chain.mined == 1

    def test_mining_failures_are_swallowed(self, l1_chain, fake_time):
        l1_chain.checkpoint_proven = False
        l1_chain.fail["mine_block"] = RuntimeError("evm_mine not supported")

        assert not wait_for_checkpoint_proven(
            l1_chain, ADDRESSES.outbox, 12, max_wait=60, poll_interval=5, mine_interval=10
        )
        assert len(l1_chain.called("mine_block")) >= 1


class TestL1ToL2Message:
    def test_ready_with_witness(self, l1_chain, l2_node, fake_time):
        assert wait_for_l1_to_l2_message(l1_chain, l2_node, DEPOSIT_MESSAGE_LEAF)

    def test_not_indexed(self, l1_chain, l2_node, fake_time):
        l2_node.message_block = None
        assert not wait_for_l1_to_l2_message(l1_chain, l2_node, DEPOSIT_MESSAGE_LEAF, max_wait=20, poll_interval=5)

    def test_chain_behind_message_block(self, l1_chain, l2_node, fake_time):
        l2_node.block_number = 10
        assert not wait_for_l1_to_l2_message(l1_chain, l2_node, DEPOSIT_MESSAGE_LEAF, max_wait=20, poll_interval=5)

    def test_empty_witness_is_not_ready(self, l1_chain, l2_node, fake_time):
        l2_node.l1_to_l2_leaf_index = None
        assert not wait_for_l1_to_l2_message(l1_chain, l2_node, DEPOSIT_MESSAGE_LEAF, max_wait=20, poll_interval=5)

    def test_block_comparison_without_witness_api(self, l1_chain, fake_time):
        assert wait_for_l1_to_l2_message(l1_chain, NoWitnessL2Node(), DEPOSIT_MESSAGE_LEAF)

    def test_works_without_l1(self, l2_node, fake_time):
        l2_node.message_block = None
        assert not wait_for_l1_to_l2_message(None, l2_node, DEPOSIT_MESSAGE_LEAF, max_wait=60, poll_interval=5)


class TestClaimable:
    def test_initial_nudges_then_leaf_wait(self, l1_chain, l2_node, fake_time):
        assert wait_for_l1_to_l2_claimable(l1_chain, l2_node, DEPOSIT_MESSAGE_LEAF)
        assert l1_chain.mined == 3

    @pytest.mark.parametrize("blocks,expected", [
        ([100, 101, 102, 103, 104], True),
        ([100, 101, 102], True),
        ([100, 101], False),
    ])
    def test_block_progress_without_leaf(self, l1_chain, fake_time, blocks, expected):
        node = GrowingL2Node(blocks)
        assert wait_for_l1_to_l2_claimable(l1_chain, node, None, max_wait=30, poll_interval=5) is expected


def test_mine_quietly_ignores_missing_chain_and_errors():
    mine_quietly(None)
    chain = FakeL1Chain()
    chain.fail["mine_block"] = RuntimeError("nope")
    mine_quietly(chain)
    assert chain.called("mine_block") == [()]
