"""
Deposit flows.

A deposit is split in two phases so that the slow part (waiting for the L2
block to be proven on L1) can resume after a restart:

Phase 1 (2 steps)
    1. Generate the claim secret and compute the deadline
    2. ``request_deposit`` on L2; store the secret, then a PendingDeposit
       snapshot, and record a PendingDeposit position

Phase 2 (4 steps), driven only by the snapshot and the stored secret
    1. Compute the L2→L1 message hash, get its proof, wait for the checkpoint
    2. ``executeDeposit`` on L1 through the relayer and read the shares
    3. Wait for the L1→L2 confirmation message
    4. ``finalize_deposit`` on L2 (a failure here is logged, not raised)

``execute_deposit_flow`` runs both phases back to back as six steps.
"""
import logging
import time
from typing import Optional

from ..config import DEFAULT_DEADLINE_OFFSET, DEFAULT_MAX_RETRIES, DEFAULT_TOKEN_DECIMALS
from ..crypto import (
    generate_secret_pair, compute_owner_hash, compute_salt, compute_deposit_content_hash,
    to_field, to_hex32,
)
from ..exceptions import DepositFlowError, InvalidParameterError, SecretNotFoundError
from ..fees import calculate_fee, calculate_net_amount, format_amount, validate_deadline_offset, validate_deposit_amount
from ..messaging.proof import wait_for_l1_to_l2_message
from ..models import (
    DepositIntent, DepositPhase1Result, DepositPhase2Result, DepositResult, IntentStatus,
    PendingDeposit, Position,
)
from ..observer import FlowObserver, OperationState
from ..retry import execute_with_retry
from ..types import FlowStores, L1Context, L2Context
from ._base import FlowRun, prove_l2_to_l1_message

logger = logging.getLogger(__name__)

PHASE1_TOTAL_STEPS = 2
PHASE2_TOTAL_STEPS = 4
DEPOSIT_TOTAL_STEPS = PHASE1_TOTAL_STEPS + PHASE2_TOTAL_STEPS


def get_deposit_phase1_step_count() -> int:
    return PHASE1_TOTAL_STEPS


def get_deposit_phase2_step_count() -> int:
    return PHASE2_TOTAL_STEPS


def get_deposit_step_count() -> int:
    return DEPOSIT_TOTAL_STEPS


def _require_contract(l2: L2Context):
    if l2.contract is None:
        raise InvalidParameterError("L2 context has no privacy wrapper contract client")
    return l2.contract


def _run_phase1(
    run: FlowRun,
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    amount: int,
    deadline_offset: int,
    original_decimals: int,
) -> DepositPhase1Result:
    contract = _require_contract(l2)
    chain = l1.chain
    asset = l1.addresses.token

    run.step_to(1, "Generate secret and prepare parameters")
    pair = generate_secret_pair(l2.hasher)
    deadline = chain.block_timestamp() + deadline_offset
    fee = calculate_fee(amount)
    net_amount = calculate_net_amount(amount)
    run.log(f"Deadline: {deadline} (L1 timestamp + {deadline_offset}s)")
    run.log(f"Amount: {format_amount(amount)}, fee: {format_amount(fee)}, net: {format_amount(net_amount)}")

    run.step_to(2, "Request deposit on L2")
    request = contract.request_deposit(asset, amount, original_decimals, deadline, pair.secret_hash)
    intent_id = to_hex32(request.intent_id)
    run.set_intent_id(intent_id)
    run.log(f"Deposit intent {intent_id[:16]}... (L2 tx {request.tx_hash})", "success")

    # Owner hash needs the intent id so that every intent gets its own
    owner_hash = compute_owner_hash(l2.hasher, l2.wallet_address, intent_id)
    salt = compute_salt(l2.hasher, l2.wallet_address, pair.secret_hash)

    # Secret first: a snapshot without its secret could never be finalized
    stores.secrets.store(intent_id, to_hex32(pair.secret), l2.wallet_address)

    l2_block_number = request.block_number
    if l2_block_number is None:
        l2_block_number = l2.node.get_block_number()

    pending = PendingDeposit(
        intent_id=intent_id,
        owner_hash=to_hex32(owner_hash),
        asset=asset,
        amount=amount,
        net_amount=net_amount,
        original_decimals=original_decimals,
        deadline=deadline,
        salt=to_hex32(salt),
        secret_hash=to_hex32(pair.secret_hash),
        l2_block_number=l2_block_number,
        l2_contract_address=contract.address,
        l2_tx_hash=request.tx_hash,
        created_at=int(time.time() * 1000),
    )
    stores.pending_deposits.save(pending)
    stores.positions.upsert(Position(
        intent_id=intent_id,
        asset_id=asset,
        shares=net_amount,
        status=IntentStatus.PENDING_DEPOSIT,
    ))
    run.log("Pending deposit saved; run Phase 2 once the L2 block is proven")

    return DepositPhase1Result(pending_deposit=pending, secret=pair.secret, secret_hash=pair.secret_hash)


def _run_phase2(
    run: FlowRun,
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    pending: PendingDeposit,
    secret: int,
) -> DepositPhase2Result:
    chain = l1.chain
    tx_hashes = {}

    run.step_to(1, "Prepare L1 execution")
    content_hash = compute_deposit_content_hash(
        pending.intent_id,
        pending.owner_hash,
        pending.asset,
        pending.net_amount,
        pending.original_decimals,
        pending.deadline,
        pending.salt,
        pending.secret_hash,
    )
    start_block = pending.l2_block_number or l2.node.get_block_number()
    proof = prove_l2_to_l1_message(run, l1, l2.node, pending.l2_contract_address, content_hash, start_block)

    run.step_to(2, "Execute deposit on L1")
    run.log("Relayer executing the L1 deposit")
    intent = DepositIntent(
        intent_id=to_field(pending.intent_id),
        owner_hash=to_field(pending.owner_hash),
        asset=pending.asset,
        amount=pending.net_amount,
        original_decimals=pending.original_decimals,
        deadline=pending.deadline,
        salt=to_field(pending.salt),
        secret_hash=to_field(pending.secret_hash),
    )
    executed = chain.execute_deposit(l1.addresses.portal, intent, proof)
    tx_hashes["l1Execute"] = executed.tx_hash
    shares = chain.intent_shares(l1.addresses.portal, pending.intent_id)
    run.log(f"Shares recorded: {shares} (L1→L2 message index {executed.message_index})", "success")

    run.step_to(3, "Wait for L1→L2 message")
    ready = wait_for_l1_to_l2_message(chain, l2.node, executed.message_leaf)

    run.step_to(4, "Finalize deposit on L2")
    finalized = False
    if not ready:
        run.log("Cannot finalize: L1→L2 message not consumable yet", "warning")
    elif l2.contract is None:
        run.log("Cannot finalize: no privacy wrapper contract client", "warning")
    else:
        try:
            result = l2.contract.finalize_deposit(
                pending.intent_id, pending.asset, shares, secret, executed.message_index
            )
            tx_hashes["l2Finalize"] = result.tx_hash
            finalized = True
            run.log(f"Finalize tx: {result.tx_hash}", "success")
        except Exception as e:
            run.log(f"finalize_deposit failed: {e}", "warning")

    stores.pending_deposits.remove(pending.intent_id)
    position = stores.positions.set_status(pending.intent_id, IntentStatus.CONFIRMED, shares=shares)
    if position is None:
        stores.positions.upsert(Position(
            intent_id=pending.intent_id,
            asset_id=pending.asset,
            shares=shares,
            status=IntentStatus.CONFIRMED,
        ))

    return DepositPhase2Result(
        intent_id=pending.intent_id,
        shares=shares,
        finalized=finalized,
        tx_hashes=tx_hashes,
    )


def execute_deposit_phase1(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    amount: int,
    deadline_offset: int = DEFAULT_DEADLINE_OFFSET,
    original_decimals: int = DEFAULT_TOKEN_DECIMALS,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
) -> DepositPhase1Result:
    """
    Request a deposit on L2 and persist everything Phase 2 needs.

    Args:
        l1: L1 chain and contract addresses
        l2: L2 node, wallet address and wrapper contract client
        stores: Local stores
        amount: Deposit amount in token base units (before fee)
        deadline_offset: Seconds from the current L1 timestamp to the deadline
        original_decimals: Token decimals

    Returns:
        The persisted snapshot and the claim secret

    Raises:
        InvalidParameterError: If the amount or deadline offset is out of range
        DepositFlowError: For unclassified failures
    """
    validate_deposit_amount(amount)
    validate_deadline_offset(deadline_offset)

    with FlowRun("deposit-phase1", PHASE1_TOTAL_STEPS, DepositFlowError, observer, state) as run:
        return _run_phase1(run, l1, l2, stores, amount, deadline_offset, original_decimals)


def execute_deposit_phase2(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    pending: PendingDeposit,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
) -> DepositPhase2Result:
    """
    Execute a pending deposit on L1 and finalize it on L2.

    Running Phase 2 again for an intent that is no longer in the ledger does
    nothing and returns ``skipped=True``.

    Raises:
        SecretNotFoundError: If the claim secret for the intent is not stored
        OperationTimeoutError: If the proof or checkpoint does not appear in time
        DepositFlowError: For unclassified failures
    """
    with FlowRun("deposit-phase2", PHASE2_TOTAL_STEPS, DepositFlowError, observer, state) as run:
        run.set_intent_id(pending.intent_id)
        if not stores.pending_deposits.has(pending.intent_id):
            run.log(f"Deposit {pending.intent_id[:16]}... already executed, nothing to do")
            return DepositPhase2Result(intent_id=pending.intent_id, shares=0, skipped=True)

        entry = stores.secrets.get(pending.intent_id, l2.wallet_address)
        if entry is None:
            raise SecretNotFoundError(pending.intent_id)
        run.log("Secret retrieved from storage")

        return _run_phase2(run, l1, l2, stores, pending, to_field(entry.secret_hex))


def execute_deposit_flow(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    amount: int,
    deadline_offset: int = DEFAULT_DEADLINE_OFFSET,
    original_decimals: int = DEFAULT_TOKEN_DECIMALS,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
) -> DepositResult:
    """Run Phase 1 and Phase 2 in one go (six steps)."""
    validate_deposit_amount(amount)
    validate_deadline_offset(deadline_offset)

    with FlowRun("deposit", DEPOSIT_TOTAL_STEPS, DepositFlowError, observer, state) as run:
        phase1 = _run_phase1(run, l1, l2, stores, amount, deadline_offset, original_decimals)
        run.step_offset = PHASE1_TOTAL_STEPS
        phase2 = _run_phase2(run, l1, l2, stores, phase1.pending_deposit, phase1.secret)
        tx_hashes = {"l2Request": phase1.pending_deposit.l2_tx_hash}
        tx_hashes.update(phase2.tx_hashes)
        return DepositResult(
            intent_id=phase2.intent_id,
            secret=phase1.secret,
            secret_hash=phase1.secret_hash,
            shares=phase2.shares,
            finalized=phase2.finalized,
            tx_hashes=tx_hashes,
        )


def execute_deposit_phase1_with_retry(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    amount: int,
    deadline_offset: int = DEFAULT_DEADLINE_OFFSET,
    original_decimals: int = DEFAULT_TOKEN_DECIMALS,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> DepositPhase1Result:
    return execute_with_retry(
        lambda: execute_deposit_phase1(
            l1, l2, stores, amount, deadline_offset, original_decimals, observer, state
        ),
        max_retries=max_retries,
        operation="deposit-phase1",
    )


def execute_deposit_phase2_with_retry(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    pending: PendingDeposit,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> DepositPhase2Result:
    return execute_with_retry(
        lambda: execute_deposit_phase2(l1, l2, stores, pending, observer, state),
        max_retries=max_retries,
        operation="deposit-phase2",
    )


def execute_deposit_flow_with_retry(
    l1: L1Context,
    l2: L2Context,
    stores: FlowStores,
    amount: int,
    deadline_offset: int = DEFAULT_DEADLINE_OFFSET,
    original_decimals: int = DEFAULT_TOKEN_DECIMALS,
    observer: Optional[FlowObserver] = None,
    state: Optional[OperationState] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> DepositResult:
    return execute_with_retry(
        lambda: execute_deposit_flow(
            l1, l2, stores, amount, deadline_offset, original_decimals, observer, state
        ),
        max_retries=max_retries,
        operation="deposit",
    )
