"""
Bounded waits for cross-chain message propagation.

Every wait polls until its deadline and then reports "not ready" instead of
raising; callers decide whether that is fatal. Poll errors are logged and
the loop continues. Loops that depend on L1 progress periodically ask a
development node to mine a block so the L2 archiver keeps syncing.
"""
import logging
import time
from typing import Optional

from .._rate_limited_log import rate_limited_log
from ..chain.interfaces import L1Chain, L2Node
from ..config import PROOF_WAIT, CHECKPOINT_WAIT, DEPOSIT_MESSAGE_WAIT, CLAIM_MESSAGE_WAIT
from ..models import L2ToL1MessageProof

logger = logging.getLogger(__name__)

# Leafless claim wait: L2 blocks of progress that count as "consumable"
REQUIRED_BLOCK_ADVANCE = 4
MIN_BLOCK_ADVANCE_ON_TIMEOUT = 2
INITIAL_MINE_COUNT = 3


def mine_quietly(l1: Optional[L1Chain]) -> None:
    """Nudge the L1 node; failures are only logged."""
    if l1 is None:
        return
    try:
        l1.mine_block()
    except Exception as e:
        logger.debug(f"L1 mine nudge failed: {e}")


class _MineNudger:
    """Mines an L1 block at most once per interval."""

    def __init__(self, l1: Optional[L1Chain], interval: float):
        self.l1 = l1
        self.interval = interval
        self.last = time.monotonic()

    def maybe_mine(self) -> None:
        if self.l1 is None:
            return
        now = time.monotonic()
        if now - self.last > self.interval:
            logger.debug("Mining L1 block to trigger archiver sync")
            mine_quietly(self.l1)
            self.last = now


def wait_for_l2_to_l1_proof(
    node: L2Node,
    message_hash: int,
    start_block: int,
    max_wait: float = PROOF_WAIT.max_wait,
    poll_interval: float = PROOF_WAIT.poll_interval,
    l1: Optional[L1Chain] = None,
    mine_interval: float = PROOF_WAIT.mine_interval,
) -> L2ToL1MessageProof:
    """
    Find the L2 block containing an L2→L1 message and its outbox witness.

    Blocks are scanned from ``start_block`` up to the latest block; the scan
    resumes after the last fully scanned block on the next poll.

    Args:
        node: L2 node
        message_hash: L2→L1 message hash
        start_block: First L2 block that may contain the message
        max_wait: Overall time budget in seconds
        poll_interval: Delay between polls in seconds
        l1: L1 chain used for mining nudges (None disables nudging)
        mine_interval: Minimum time between mining nudges in seconds

    Returns:
        Proof with ``success=False`` and an error text on timeout
    """
    start = time.monotonic()
    nudger = _MineNudger(l1, mine_interval)
    next_block = start_block
    logger.info(f"Waiting for L2→L1 message proof from block {start_block}")

    while time.monotonic() - start < max_wait:
        try:
            latest = node.get_block_number()
            for block_number in range(next_block, latest + 1):
                witness = node.get_l2_to_l1_membership_witness(block_number, message_hash)
                if witness is not None:
                    logger.info(
                        f"Message found in L2 block {block_number}, leaf index {witness.leaf_index}"
                    )
                    return L2ToL1MessageProof(
                        success=True,
                        l2_block_number=block_number,
                        leaf_index=witness.leaf_index,
                        sibling_path=witness.sibling_path,
                    )
                next_block = block_number + 1
            rate_limited_log(f"L2→L1 message not found up to block {latest}", "debug", logger)
        except Exception as e:
            logger.info(f"Error checking blocks for message proof: {e}")
        nudger.maybe_mine()
        time.sleep(poll_interval)

    elapsed = round(time.monotonic() - start)
    return L2ToL1MessageProof(
        success=False,
        error=f"Timeout after {elapsed}s waiting for L2→L1 message proof",
    )


def wait_for_checkpoint_proven(
    l1: L1Chain,
    outbox: str,
    l2_block_number: int,
    max_wait: float = CHECKPOINT_WAIT.max_wait,
    poll_interval: float = CHECKPOINT_WAIT.poll_interval,
    mine_interval: float = CHECKPOINT_WAIT.mine_interval,
) -> bool:
    """
    Wait until the outbox holds the root for ``l2_block_number``.

    Returns:
        True once proven, False on timeout
    """
    start = time.monotonic()
    nudger = _MineNudger(l1, mine_interval)

    while time.monotonic() - start < max_wait:
        try:
            if l1.is_checkpoint_proven(outbox, l2_block_number):
                logger.info(f"L2 block {l2_block_number} checkpoint proven on L1")
                return True
            rate_limited_log(f"L2 block {l2_block_number} not yet proven on L1", "info", logger)
        except Exception as e:
            logger.info(f"Checkpoint query failed: {e}")
        nudger.maybe_mine()
        time.sleep(poll_interval)

    logger.warning(f"L2 block {l2_block_number} not proven after {round(time.monotonic() - start)}s")
    return False


def wait_for_l1_to_l2_message(
    l1: Optional[L1Chain],
    node: L2Node,
    message_leaf: str,
    max_wait: float = DEPOSIT_MESSAGE_WAIT.max_wait,
    poll_interval: float = DEPOSIT_MESSAGE_WAIT.poll_interval,
    mine_interval: float = DEPOSIT_MESSAGE_WAIT.mine_interval,
) -> bool:
    """
    Wait until an L1→L2 message can be consumed on L2.

    The node is asked in which block the message becomes available. Once the
    chain has reached that block, a membership witness confirms it when the
    node supports witness queries; otherwise the block comparison is trusted.

    Args:
        l1: L1 chain used for mining nudges (None disables nudging)
        node: L2 node
        message_leaf: Leaf hash of the L1→L2 message
        max_wait: Overall time budget in seconds
        poll_interval: Delay between polls in seconds
        mine_interval: Minimum time between mining nudges in seconds

    Returns:
        True when consumable, False on timeout
    """
    start = time.monotonic()
    nudger = _MineNudger(l1, mine_interval)
    witness_fn = getattr(node, "get_l1_to_l2_membership_witness", None)
    poll = 0

    while time.monotonic() - start < max_wait:
        poll += 1
        try:
            current_block = node.get_block_number()
            message_block = node.get_l1_to_l2_message_block(message_leaf)

            if message_block is None:
                logger.info(f"Poll {poll}: message not yet indexed (L2 block={current_block})")
            elif current_block < message_block:
                logger.info(f"Poll {poll}: message available at block {message_block}, current={current_block}")
            elif callable(witness_fn):
                try:
                    witness = witness_fn(current_block, message_leaf)
                    if witness:
                        logger.info(
                            f"L1→L2 message consumable after {round(time.monotonic() - start)}s "
                            f"(block {current_block})"
                        )
                        return True
                    logger.info(f"Poll {poll}: block {current_block} >= {message_block} but no witness yet")
                except Exception as e:
                    logger.info(f"Poll {poll}: witness query failed: {e}")
            else:
                logger.info(f"L1→L2 message indexed at block {current_block}; node has no witness API")
                return True
        except Exception as e:
            logger.info(f"Poll {poll}: {e}")

        nudger.maybe_mine()
        time.sleep(poll_interval)

    logger.warning(f"L1→L2 message not consumable after {round(time.monotonic() - start)}s")
    return False


def wait_for_l1_to_l2_claimable(
    l1: Optional[L1Chain],
    node: L2Node,
    message_leaf: Optional[str] = None,
    max_wait: float = CLAIM_MESSAGE_WAIT.max_wait,
    poll_interval: float = CLAIM_MESSAGE_WAIT.poll_interval,
    mine_interval: float = CLAIM_MESSAGE_WAIT.mine_interval,
) -> bool:
    """
    Wait before a token claim.

    Three L1 blocks are mined first to wake the archiver. With a message
    leaf this is :func:`wait_for_l1_to_l2_message`; without one the wait
    lasts until the L2 chain has advanced four blocks, and a timeout still
    allows the claim when at least two blocks went by.

    Returns:
        True if the claim should be attempted
    """
    start = time.monotonic()
    for _ in range(INITIAL_MINE_COUNT):
        mine_quietly(l1)
        time.sleep(1.0)

    remaining = max(0.0, max_wait - (time.monotonic() - start))
    if message_leaf:
        return wait_for_l1_to_l2_message(l1, node, message_leaf, remaining, poll_interval, mine_interval)

    logger.info("No message leaf provided, waiting for L2 block progress")
    last_block = node.get_block_number()
    advanced = 0
    nudger = _MineNudger(l1, mine_interval)

    while time.monotonic() - start < max_wait:
        try:
            current = node.get_block_number()
            if current > last_block:
                advanced += current - last_block
                last_block = current
                logger.info(f"L2 block {current} (+{advanced} total)")
                if advanced >= REQUIRED_BLOCK_ADVANCE:
                    return True
        except Exception as e:
            logger.info(f"Polling L2 block number failed: {e}")
        nudger.maybe_mine()
        time.sleep(poll_interval)

    logger.info(f"Wait completed with {advanced} L2 blocks of progress")
    return advanced >= MIN_BLOCK_ADVANCE_ON_TIMEOUT
