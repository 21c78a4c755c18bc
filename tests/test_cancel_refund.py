"""
Tests for cancelling expired deposits and claiming withdrawal refunds.
"""
import pytest

from veilbridge_sdk.exceptions import (
    CancelDepositFlowError, ClaimRefundFlowError, DeadlineNotExpiredError, InvalidParameterError,
    NetAmountMismatchError,
    NotPendingWithdrawError, WithdrawDeadlineNotExpiredError,
)
from veilbridge_sdk.flows import (
    execute_cancel_deposit, execute_cancel_deposit_with_retry, execute_claim_refund,
    get_cancel_deposit_step_count, get_claim_refund_step_count,
)
from veilbridge_sdk.models import IntentStatus, Position
from tests.test_helpers import ADDRESSES, L1_TIMESTAMP, make_pending

INTENT_ID = "0x" + "ab" * 32
NONCE = "0x" + "7e" * 32


class TestCancelDeposit:
    @pytest.fixture
    def pending(self, stores):
        pending = make_pending(INTENT_ID, deadline=L1_TIMESTAMP - 1)
        stores.pending_deposits.save(pending)
        stores.positions.upsert(Position(
            intent_id=INTENT_ID, asset_id=ADDRESSES.token, shares=999_000, status=IntentStatus.PENDING_DEPOSIT,
        ))
        return pending

    def test_cancel_after_deadline(self, l1, l2, wrapper, stores, observer, pending):
        result = execute_cancel_deposit(l1, l2, stores, INTENT_ID, pending.deadline, 999_000, observer=observer)

        assert result.refunded_amount == 999_000
        assert result.tx_hash == "0xl2cancel"
        assert wrapper.called("cancel_deposit") == [(INTENT_ID, L1_TIMESTAMP, 999_000)]
        assert stores.positions.get(INTENT_ID) is None
        assert not stores.pending_deposits.has(INTENT_ID)
        assert [step for step, _, _ in observer.steps] == [1, 2]
        assert get_cancel_deposit_step_count() == 2

    def test_deadline_equal_to_now_is_not_expired(self, l1, l2, wrapper, stores):
        with pytest.raises(DeadlineNotExpiredError) as exc_info:
            execute_cancel_deposit(l1, l2, stores, INTENT_ID, L1_TIMESTAMP, 999_000)

        assert exc_info.value.deadline == L1_TIMESTAMP
        assert exc_info.value.current_time == L1_TIMESTAMP
        assert wrapper.called("cancel_deposit") == []

    def test_error_message_tells_how_long_to_wait(self, l1, l2, stores):
        with pytest.raises(DeadlineNotExpiredError, match="Wait 60 more seconds"):
            execute_cancel_deposit(l1, l2, stores, INTENT_ID, L1_TIMESTAMP + 60, 999_000)

    def test_contract_deadline_revert(self, l1, l2, wrapper, stores, pending):
        wrapper.fail["cancel_deposit"] = RuntimeError("Assertion failed: Deadline has not expired")

        with pytest.raises(DeadlineNotExpiredError):
            execute_cancel_deposit(l1, l2, stores, INTENT_ID, pending.deadline, 999_000)
        assert stores.pending_deposits.has(INTENT_ID)

    def test_net_amount_mismatch_reports_stored_amount(self, l1, l2, wrapper, stores, pending):
        wrapper.fail["cancel_deposit"] = RuntimeError("Assertion failed: Net amount mismatch")

        with pytest.raises(NetAmountMismatchError) as exc_info:
            execute_cancel_deposit_with_retry(l1, l2, stores, INTENT_ID, pending.deadline, 1_000_000)

        assert exc_info.value.expected == 999_000
        assert exc_info.value.provided == 1_000_000
        assert len(wrapper.called("cancel_deposit")) == 1

    def test_unclassified_revert(self, l1, l2, wrapper, stores, pending):
        wrapper.fail["cancel_deposit"] = RuntimeError("Assertion failed: unknown intent")

        with pytest.raises(CancelDepositFlowError) as exc_info:
            execute_cancel_deposit(l1, l2, stores, INTENT_ID, pending.deadline, 999_000)
        assert exc_info.value.step == 2

    def test_confirmed_position_cannot_be_cancelled(self, l1, l2, wrapper, stores):
        stores.positions.upsert(Position(
            intent_id=INTENT_ID, asset_id=ADDRESSES.token, shares=999_000, status=IntentStatus.CONFIRMED,
        ))

        with pytest.raises(InvalidParameterError):
            execute_cancel_deposit(l1, l2, stores, INTENT_ID, L1_TIMESTAMP - 1, 999_000)
        assert wrapper.calls == []


class TestClaimRefund:
    @pytest.fixture
    def pending_withdraw(self, stores):
        position = Position(
            intent_id=NONCE,
            asset_id=ADDRESSES.token,
            shares=999_000,
            status=IntentStatus.PENDING_WITHDRAW,
            withdraw_deadline=L1_TIMESTAMP,
        )
        stores.positions.upsert(position)
        return position

    def test_refund_at_deadline(self, l1, l2, wrapper, stores, observer, pending_withdraw):
        result = execute_claim_refund(l1, l2, stores, NONCE, L1_TIMESTAMP, observer=observer)

        assert result.original_nonce == NONCE
        assert result.new_nonce == f"refund:{NONCE[:16]}"
        assert result.shares == 999_000
        assert result.tx_hash == "0xl2refund"
        assert wrapper.called("claim_refund") == [(NONCE, L1_TIMESTAMP)]

        position = stores.positions.get(NONCE)
        assert position.status == IntentStatus.CONFIRMED
        assert position.withdraw_deadline is None
        assert get_claim_refund_step_count() == 2

    def test_one_second_early(self, l1, l2, wrapper, stores, pending_withdraw):
        with pytest.raises(WithdrawDeadlineNotExpiredError) as exc_info:
            execute_claim_refund(l1, l2, stores, NONCE, L1_TIMESTAMP + 1)

        assert exc_info.value.deadline == L1_TIMESTAMP + 1
        assert wrapper.called("claim_refund") == []

    def test_confirmed_position_is_not_refundable(self, l1, l2, wrapper, stores):
        stores.positions.upsert(Position(
            intent_id=NONCE, asset_id=ADDRESSES.token, shares=999_000, status=IntentStatus.CONFIRMED,
        ))

        with pytest.raises(NotPendingWithdrawError) as exc_info:
            execute_claim_refund(l1, l2, stores, NONCE, L1_TIMESTAMP)

        assert exc_info.value.actual_status == IntentStatus.CONFIRMED.value
        assert wrapper.calls == []

    @pytest.mark.parametrize("message, expected", [
        ("Assertion failed: Deadline not reached", WithdrawDeadlineNotExpiredError),
        ("Assertion failed: Position is not pending withdraw", NotPendingWithdrawError),
        ("note not in pending withdraw state", NotPendingWithdrawError),
    ])
    def test_contract_reverts_are_mapped(self, l1, l2, wrapper, stores, pending_withdraw, message, expected):
        wrapper.fail["claim_refund"] = RuntimeError(message)

        with pytest.raises(expected):
            execute_claim_refund(l1, l2, stores, NONCE, L1_TIMESTAMP)
        assert stores.positions.get(NONCE).status == IntentStatus.PENDING_WITHDRAW

    @pytest.mark.parametrize("message", [
        "Assertion failed: Deadline has not expired",
        "Assertion failed: Deadline not reached",
    ])
    def test_deadline_reverts(self, l1, l2, wrapper, stores, pending_withdraw, message):
        wrapper.fail["claim_refund"] = RuntimeError(message)

        with pytest.raises(WithdrawDeadlineNotExpiredError):
            execute_claim_refund(l1, l2, stores, NONCE, L1_TIMESTAMP)

    def test_other_deadline_mentions_are_not_a_deadline_error(self, l1, l2, wrapper, stores, pending_withdraw):
        wrapper.fail["claim_refund"] = RuntimeError("Failed to decode note field 'deadline'")

        with pytest.raises(ClaimRefundFlowError) as exc_info:
            execute_claim_refund(l1, l2, stores, NONCE, L1_TIMESTAMP)

        assert exc_info.value.step == 2

    def test_unknown_position_refund_reports_zero_shares(self, l1, l2, stores):
        result = execute_claim_refund(l1, l2, stores, NONCE, L1_TIMESTAMP - 100)

        assert result.shares == 0
        assert stores.positions.get(NONCE) is None
