"""
Bridge flow: move L1 tokens into a private L2 balance.

1. Check the L1 balance and approve the token portal if needed
2. ``depositToAztecPrivate`` from the user's account; the claim secret is
   stored under the returned message key
3. Wait for the L1→L2 message and claim on L2 (a failed claim is not fatal;
   the bridge can be claimed later from the pending-bridge scan)
"""
import logging
from typing import Optional

from ..config import CLAIM_MESSAGE_WAIT, DEFAULT_MAX_RETRIES
from ..crypto import generate_secret_pair, to_hex32
from ..exceptions import BridgeFlowError, InsufficientBalanceError, InvalidParameterError
from ..fees import format_amount
from ..messaging.proof import wait_for_l1_to_l2_message
from ..models import BridgeResult
from ..observer import FlowObserver, OperationState
from ..retry import execute_with_retry
from ..types import FlowStores, L1Context, L2Context
from ._base import FlowRun

logger = logging.getLogger(__name__)

BRIDGE_TOTAL_STEPS = 3


def get_bridge_step_count() -> int:
    return BRIDGE_TOTAL_STEPS


def execute_bridge_flow(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    amount: int,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
) -> BridgeResult:
    """
    Bridge ``amount`` base units of the L1 token to the L2 wallet.

    Args:
        l1: L1 chain and contract addresses
        l2: L2 node, wallet address and bridged token client
        stores: Local stores; the claim secret is written to ``stores.secrets``
        amount: Amount in token base units
        observer: Progress receiver
        state: Operation state to update while running

    Returns:
        BridgeResult; ``claimed`` is False when the L2 claim has to be retried later

    Raises:
        InsufficientBalanceError: If the L1 balance is below ``amount``
        UserRejectedError: If the user declines a transaction
        NetworkError: If an RPC endpoint is unreachable
        OperationTimeoutError: If a call times out
        BridgeFlowError: For any other failure
    """
    if amount <= 0:
        raise InvalidParameterError(f"Bridge amount must be positive, got {amount}")

    chain = l1.chain
    addresses = l1.addresses
    tx_hashes = {}

    with FlowRun("bridge", BRIDGE_TOTAL_STEPS, BridgeFlowError, observer, state) as run:
        run.step_to(1, "Check balance and approve")
        pair = generate_secret_pair(l2.hasher)

        balance = chain.token_balance(addresses.token, chain.user_address)
        if balance < amount:
            raise InsufficientBalanceError(balance, amount)
        run.log(f"Bridging {format_amount(amount)} tokens (balance {format_amount(balance)})")

        allowance = chain.token_allowance(addresses.token, chain.user_address, addresses.token_portal)
        if allowance < amount:
            tx_hashes["l1Approve"] = chain.approve(addresses.token, addresses.token_portal, amount)
            run.log("Token portal approved", "success")

        run.step_to(2, "Deposit to L2 (private)")
        deposit = chain.deposit_to_private(addresses.token_portal, amount, pair.secret_hash)
        tx_hashes["l1Deposit"] = deposit.tx_hash
        stores.secrets.store(deposit.message_key, to_hex32(pair.secret), l2.wallet_address)
        run.log(f"Deposit sent, message key {deposit.message_key[:18]}...", "success")

        run.step_to(3, "Claim tokens on L2")
        claimed = False
        ready = wait_for_l1_to_l2_message(
            chain,
            l2.node,
            deposit.message_key,
            max_wait=CLAIM_MESSAGE_WAIT.max_wait,
            poll_interval=CLAIM_MESSAGE_WAIT.poll_interval,
            mine_interval=CLAIM_MESSAGE_WAIT.mine_interval,
        )
        if not ready:
            run.log("L1→L2 message not consumable yet; tokens can be claimed later", "warning")
        elif l2.bridged_token is None:
            run.log("No bridged token client configured; tokens can be claimed later", "warning")
        else:
            try:
                claim = l2.bridged_token.claim_private(amount, pair.secret, deposit.message_index)
                tx_hashes["l2Claim"] = claim.tx_hash
                claimed = True
                stores.secrets.remove(deposit.message_key)
                run.log(f"L2 claim tx: {claim.tx_hash}", "success")
            except Exception as e:
                run.log(f"claim_private failed, tokens can be claimed later: {e}", "warning")

        return BridgeResult(
            secret=pair.secret,
            secret_hash=pair.secret_hash,
            amount=amount,
            message_key=deposit.message_key,
            message_index=deposit.message_index,
            claimed=claimed,
            tx_hashes=tx_hashes,
        )


def execute_bridge_flow_with_retry(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    amount: int,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> BridgeResult:
    return execute_with_retry(
        lambda: execute_bridge_flow(l1, l2, stores, amount, observer, state),
        max_retries=max_retries,
        operation="bridge",
    )
