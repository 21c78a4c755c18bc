"""
Recovery of unclaimed L1→L2 bridge deposits.

Nothing about a bridge is persisted except its claim secret, stored under
the L1→L2 message key. Pending bridges are rebuilt by matching the token
portal's deposit events against those secrets.
"""
import logging
from typing import List, Optional

from ..chain.interfaces import L1Chain, L2Node
from ..models import MessageReadiness, PendingBridge, PendingBridgeScanResult, PendingBridgeStatus
from ..storage import SecretStore

logger = logging.getLogger(__name__)


def _leaf_index(witness) -> Optional[int]:
    if witness and len(witness) >= 2:
        return int(witness[0])
    return None


def check_message_readiness(node: L2Node, message_key: str) -> MessageReadiness:
    """
    Strict readiness check used when scanning.

    A message only counts as ready when the node returns a membership
    witness, because the claim needs the leaf index it carries.
    """
    try:
        current_block = node.get_block_number()
        message_block = node.get_l1_to_l2_message_block(message_key)
        if message_block is None or current_block < message_block:
            return MessageReadiness(ready=False, current_block=current_block, available_at_block=message_block)

        witness_fn = getattr(node, "get_l1_to_l2_membership_witness", None)
        if not callable(witness_fn):
            logger.info("Node has no L1→L2 witness API; cannot determine the leaf index")
            return MessageReadiness(ready=False, current_block=current_block, available_at_block=message_block)

        leaf_index = _leaf_index(witness_fn(current_block, message_key))
        if leaf_index is None:
            return MessageReadiness(ready=False, current_block=current_block, available_at_block=message_block)
        return MessageReadiness(ready=True, current_block=current_block, leaf_index=leaf_index)
    except Exception as e:
        logger.info(f"Readiness check for {message_key[:18]}... failed: {e}")
        return MessageReadiness(ready=False)


def check_bridge_message_ready(node: L2Node, message_key: str) -> MessageReadiness:
    """
    Lenient readiness check used right before a claim.

    Once the chain has reached the message's block, a missing witness API or
    a failing witness query still counts as ready; only an empty witness
    keeps the message pending.
    """
    try:
        current_block = node.get_block_number()
        message_block = node.get_l1_to_l2_message_block(message_key)
        if message_block is None:
            return MessageReadiness(ready=False, current_block=current_block)
        if current_block < message_block:
            return MessageReadiness(ready=False, current_block=current_block, available_at_block=message_block)

        witness_fn = getattr(node, "get_l1_to_l2_membership_witness", None)
        if callable(witness_fn):
            try:
                witness = witness_fn(current_block, message_key)
            except Exception as e:
                logger.debug(f"Witness query failed, assuming ready: {e}")
                return MessageReadiness(ready=True, current_block=current_block)
            leaf_index = _leaf_index(witness)
            if leaf_index is None:
                return MessageReadiness(ready=False, current_block=current_block, available_at_block=message_block)
            return MessageReadiness(ready=True, current_block=current_block, leaf_index=leaf_index)

        return MessageReadiness(ready=True, current_block=current_block)
    except Exception as e:
        logger.error(f"Failed to check message readiness: {e}")
        return MessageReadiness(ready=False)


def scan_pending_bridges(
    chain: L1Chain,
    token_portal: str,
    secrets: SecretStore,
    l2_wallet_address: str,
    node: Optional[L2Node] = None,
    from_block: int = 0,
) -> PendingBridgeScanResult:
    """
    Rebuild the list of bridges that still have a claim secret.

    Args:
        chain: L1 chain to read deposit events from
        token_portal: Token portal address
        secrets: Secret store holding bridge and withdrawal secrets
        l2_wallet_address: Owner whose secrets are decrypted
        node: L2 node for readiness checks; without it every status is "unknown"
        from_block: First L1 block to scan

    Returns:
        Matched bridges and event counts
    """
    events = chain.deposit_to_private_events(token_portal, from_block)
    by_key = {entry.key.lower(): entry.secret_hex for entry in secrets.get_all(l2_wallet_address)}
    logger.info(f"Scanning {len(events)} deposit events against {len(by_key)} stored secrets")

    bridges: List[PendingBridge] = []
    for event in events:
        secret = by_key.get(event.message_key.lower())
        if secret is None:
            continue

        status = PendingBridgeStatus.UNKNOWN
        leaf_index = None
        if node is not None:
            readiness = check_message_readiness(node, event.message_key)
            status = PendingBridgeStatus.READY if readiness.ready else PendingBridgeStatus.PENDING
            leaf_index = readiness.leaf_index

        bridges.append(PendingBridge(
            message_key=event.message_key,
            message_index=event.message_index,
            amount=event.amount,
            l1_tx_hash=event.tx_hash,
            l1_block_number=event.block_number,
            secret_hash=event.secret_hash,
            secret=secret,
            status=status,
            leaf_index=leaf_index,
        ))

    return PendingBridgeScanResult(bridges=bridges, total_events=len(events), matched_events=len(bridges))


def get_claimable_bridges(
    chain: L1Chain,
    token_portal: str,
    secrets: SecretStore,
    l2_wallet_address: str,
    node: Optional[L2Node] = None,
    from_block: int = 0,
) -> List[PendingBridge]:
    return scan_pending_bridges(chain, token_portal, secrets, l2_wallet_address, node, from_block).bridges
