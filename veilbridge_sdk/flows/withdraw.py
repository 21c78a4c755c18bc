"""
Withdraw flow: turn a whole position back into claimable L2 tokens.

1. Request the withdrawal on L2, which nullifies the position note
2. Wait for the L2→L1 message proof and the checkpoint
3. ``executeWithdraw`` on L1 through the relayer; the proceeds are deposited
   into the token portal escrow as a new L1→L2 message
4. Store the claim secret under that message key

The tokens are claimed afterwards with :func:`execute_token_claim`.
"""
import logging
from typing import Optional

from ..config import DEFAULT_DEADLINE_OFFSET, DEFAULT_MAX_RETRIES
from ..crypto import generate_secret_pair, compute_owner_hash, compute_withdraw_content_hash, to_field, to_hex32
from ..exceptions import InvalidParameterError, PartialWithdrawError, PositionNotFoundError, WithdrawFlowError
from ..fees import format_amount, validate_deadline_offset
from ..models import IntentStatus, Position, WithdrawIntent, WithdrawResult
from ..observer import FlowObserver, OperationState
from ..retry import execute_with_retry
from ..types import FlowStores, L1Context, L2Context
from ._base import FlowRun, prove_l2_to_l1_message

logger = logging.getLogger(__name__)

WITHDRAW_TOTAL_STEPS = 4

_POSITION_ERROR_PATTERNS = ("position", "note", "not found")


def get_withdraw_step_count() -> int:
    return WITHDRAW_TOTAL_STEPS


def _is_missing_position(error: Exception) -> bool:
    text = str(error).lower()
    return any(pattern in text for pattern in _POSITION_ERROR_PATTERNS)


def execute_withdraw_flow(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    intent_id: str,
    amount: int,
    deadline_offset: int = DEFAULT_DEADLINE_OFFSET,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
) -> WithdrawResult:
    """
    Withdraw a confirmed position in full.

    Args:
        l1: L1 chain and contract addresses
        l2: L2 node, wallet address and wrapper contract client
        stores: Local stores
        intent_id: Intent id (note nonce) of the position to withdraw
        amount: Requested amount; must equal the position's shares
        deadline_offset: Seconds from the current L1 timestamp to the
            withdrawal deadline, after which a refund can be claimed

    Returns:
        WithdrawResult; ``already_executed`` is True when an earlier attempt
        already completed the L1 withdrawal

    Raises:
        PositionNotFoundError: If there is no local position or the L2
            contract cannot find the note
        PartialWithdrawError: If ``amount`` is not the full position
        WithdrawFlowError: For unclassified failures
    """
    validate_deadline_offset(deadline_offset)
    if l2.contract is None:
        raise InvalidParameterError("L2 context has no privacy wrapper contract client")

    position = stores.positions.get(intent_id)
    if position is None:
        raise PositionNotFoundError(intent_id)
    if amount != position.shares:
        raise PartialWithdrawError(amount, position.shares)

    chain = l1.chain
    addresses = l1.addresses
    tx_hashes = {}

    with FlowRun("withdraw", WITHDRAW_TOTAL_STEPS, WithdrawFlowError, observer, state) as run:
        run.set_intent_id(position.intent_id)

        run.step_to(1, "Request withdrawal on L2")
        pair = generate_secret_pair(l2.hasher)

        if chain.is_withdraw_consumed(addresses.portal, position.intent_id):
            run.log("Withdrawal already executed on L1, removing stale position", "warning")
            stores.positions.remove(position.intent_id)
            return WithdrawResult(
                intent_id=position.intent_id,
                secret=pair.secret,
                secret_hash=pair.secret_hash,
                amount=amount,
                already_executed=True,
            )

        deadline = chain.block_timestamp() + deadline_offset
        run.log(f"Withdrawing {format_amount(amount)} shares, deadline {deadline}")
        try:
            request = l2.contract.request_withdraw(position.intent_id, amount, deadline, pair.secret_hash)
        except Exception as e:
            if _is_missing_position(e):
                raise PositionNotFoundError(position.intent_id) from e
            raise
        withdraw_intent_id = to_hex32(request.intent_id)
        tx_hashes["l2Request"] = request.tx_hash
        run.set_intent_id(withdraw_intent_id)
        run.log(f"Withdraw intent {withdraw_intent_id[:16]}... (L2 tx {request.tx_hash})", "success")

        owner_hash = compute_owner_hash(l2.hasher, l2.wallet_address, withdraw_intent_id)

        run.step_to(2, "Wait for L2→L1 message proof")
        content_hash = compute_withdraw_content_hash(
            withdraw_intent_id, owner_hash, amount, deadline, addresses.token, pair.secret_hash
        )
        start_block = request.block_number
        if start_block is None:
            start_block = l2.node.get_block_number()
        proof = prove_l2_to_l1_message(run, l1, l2.node, l2.contract.address, content_hash, start_block)

        run.step_to(3, "Execute withdrawal on L1")
        run.log("Relayer executing the L1 withdrawal")
        intent = WithdrawIntent(
            intent_id=to_field(withdraw_intent_id),
            owner_hash=owner_hash,
            amount=amount,
            deadline=deadline,
        )
        executed = chain.execute_withdraw(addresses.portal, intent, pair.secret_hash, proof)
        tx_hashes["l1Execute"] = executed.tx_hash
        run.log(
            f"Withdrawn {format_amount(executed.withdrawn_amount)} tokens to the portal escrow "
            f"(message key {executed.message_key[:18]}...)",
            "success",
        )

        run.step_to(4, "Store claim secret")
        try:
            stores.secrets.store(executed.message_key, to_hex32(pair.secret), l2.wallet_address)
            run.log("Claim secret stored under the withdrawal message key")
        except Exception as e:
            run.log(f"Failed to store claim secret ({e}); keep the returned secret to claim the tokens", "error")

        stores.positions.upsert(Position(
            intent_id=position.intent_id,
            asset_id=position.asset_id,
            shares=position.shares,
            status=IntentStatus.PENDING_WITHDRAW,
            withdraw_deadline=deadline,
        ))

        return WithdrawResult(
            intent_id=withdraw_intent_id,
            secret=pair.secret,
            secret_hash=pair.secret_hash,
            amount=executed.withdrawn_amount,
            message_key=executed.message_key,
            tx_hashes=tx_hashes,
        )


def execute_withdraw_flow_with_retry(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    intent_id: str,
    amount: int,
    deadline_offset: int = DEFAULT_DEADLINE_OFFSET,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> WithdrawResult:
    return execute_with_retry(
        lambda: execute_withdraw_flow(l1, l2, stores, intent_id, amount, deadline_offset, observer, state),
        max_retries=max_retries,
        operation="withdraw",
    )
