"""
Tests for the web3-backed L1 chain client.
"""
from unittest.mock import MagicMock

import pytest
from web3.exceptions import ContractLogicError

from veilbridge_sdk.chain.l1 import DEFAULT_GAS, Web3L1Chain
from veilbridge_sdk.exceptions import TransactionError
from veilbridge_sdk.models import DepositIntent, MerkleProof, WithdrawIntent
from tests.test_helpers import ADDRESSES, USER_ADDRESS

RPC_URL = "http://localhost:8545"
RELAYER_ADDRESS = "0x3333333333333333333333333333333333333333"
TX_HASH = b"\x11" * 32
PROOF = MerkleProof(l2_block_number=12, leaf_index=3, sibling_path=["0x" + "01" * 32])


def make_signer(address):
    signer = MagicMock()
    signer.address = address
    signer.sign_transaction.return_value = MagicMock(raw_transaction=b"signed-" + address[-4:].encode())
    return signer


@pytest.fixture
def w3():
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 5
    w3.eth.gas_price = 1_000_000_000
    w3.eth.send_raw_transaction.return_value = TX_HASH
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "transactionHash": TX_HASH}
    return w3


@pytest.fixture
def contract(w3):
    return w3.eth.contract.return_value


@pytest.fixture
def user():
    return make_signer(USER_ADDRESS)


@pytest.fixture
def relayer():
    return make_signer(RELAYER_ADDRESS)


@pytest.fixture
def chain(w3, user, relayer):
    return Web3L1Chain(RPC_URL, user_signer=user, relayer_signer=relayer, w3=w3)


def bound_call(function, gas=100_000):
    call = function.return_value
    call.estimate_gas.return_value = gas
    call.build_transaction.side_effect = lambda params: dict(params, data="0x")
    return call


class TestConstruction:
    def test_requires_user_account(self, w3):
        with pytest.raises(ValueError, match="user_key or user_signer"):
            Web3L1Chain(RPC_URL, w3=w3)

    def test_rejects_insecure_remote_url(self, w3, user):
        with pytest.raises(ValueError, match="https"):
            Web3L1Chain("http://rpc.example.com", user_signer=user, relayer_signer=make_signer(RELAYER_ADDRESS), w3=w3)

    def test_requires_relayer_account(self, w3, user):
        with pytest.raises(ValueError, match="relayer_key or relayer_signer"):
            Web3L1Chain(RPC_URL, user_signer=user, w3=w3)

    def test_relayer_must_differ_from_user(self, w3, user):
        with pytest.raises(ValueError, match="must differ"):
            Web3L1Chain(RPC_URL, user_signer=user, relayer_signer=make_signer(USER_ADDRESS.lower()), w3=w3)

    def test_private_key_accounts(self, w3):
        chain = Web3L1Chain(RPC_URL, user_key="0x" + "11" * 32, relayer_key="0x" + "22" * 32, w3=w3)
        assert chain.user_address.startswith("0x")
        assert len(chain.user_address) == 42
        assert chain.relayer_signer.address != chain.user_address


class TestReads:
    def test_token_balance(self, chain, contract):
        contract.functions.balanceOf.return_value.call.return_value = 123
        assert chain.token_balance(ADDRESSES.token, USER_ADDRESS) == 123

    def test_block_timestamp(self, chain, w3):
        w3.eth.get_block.return_value = {"timestamp": 1_700_000_000}
        assert chain.block_timestamp() == 1_700_000_000
        w3.eth.get_block.assert_called_once_with("latest")

    def test_intent_shares_uses_bytes32(self, chain, contract):
        contract.functions.getIntentShares.return_value.call.return_value = 999_000

        assert chain.intent_shares(ADDRESSES.portal, "0x01") == 999_000
        contract.functions.getIntentShares.assert_called_once_with(b"\x00" * 31 + b"\x01")

    def test_checkpoint_proven_when_root_exists(self, chain, contract):
        contract.functions.getRootData.return_value.call.return_value = (b"\x01" * 32, 1)
        assert chain.is_checkpoint_proven(ADDRESSES.outbox, 12)

    def test_checkpoint_not_proven_on_revert(self, chain, contract):
        contract.functions.getRootData.return_value.call.side_effect = ContractLogicError("execution reverted")
        assert not chain.is_checkpoint_proven(ADDRESSES.outbox, 12)

    def test_deposit_events(self, chain, w3, contract):
        w3.eth.get_logs.return_value = [{"log": 1}]
        contract.events.DepositToAztecPrivate.return_value.process_log.return_value = {
            "args": {
                "amount": 5_000_000,
                "secretHash": b"\x11" * 32,
                "messageKey": b"\xab" * 32,
                "messageIndex": 7,
            },
            "transactionHash": b"\x22" * 32,
            "blockNumber": 42,
        }

        events = chain.deposit_to_private_events(ADDRESSES.token_portal)

        assert len(events) == 1
        assert events[0].message_key == "0x" + "ab" * 32
        assert events[0].amount == 5_000_000
        assert events[0].tx_hash == "0x" + "22" * 32
        assert w3.eth.get_logs.call_args[0][0]["fromBlock"] == 0


class TestWrites:
    def test_approve_signed_by_user(self, chain, contract, user, relayer, w3):
        call = bound_call(contract.functions.approve)

        tx_hash = chain.approve(ADDRESSES.token, ADDRESSES.token_portal, 5_000_000)

        assert tx_hash == "0x" + "11" * 32
        tx = user.sign_transaction.call_args[0][0]
        assert tx["from"] == USER_ADDRESS
        assert tx["nonce"] == 5
        assert tx["gas"] == int(100_000 * 1.1)
        relayer.sign_transaction.assert_not_called()
        w3.eth.send_raw_transaction.assert_called_once_with(b"signed-1111")
        call.estimate_gas.assert_called_once_with({"from": USER_ADDRESS})

    def test_execute_deposit_signed_by_relayer(self, chain, contract, user, relayer, w3):
        bound_call(contract.functions.executeDeposit)
        contract.events.L2MessageSent.return_value.process_receipt.return_value = [
            {"args": {"messageLeaf": b"\xcd" * 32, "messageIndex": 9}},
        ]
        intent = DepositIntent(
            intent_id=1, owner_hash=2, asset=ADDRESSES.token, amount=999_000,
            original_decimals=6, deadline=1_700_003_600, salt=3, secret_hash=4,
        )

        result = chain.execute_deposit(ADDRESSES.portal, intent, PROOF)

        assert result.message_leaf == "0x" + "cd" * 32
        assert result.message_index == 9
        assert relayer.sign_transaction.call_args[0][0]["from"] == RELAYER_ADDRESS
        user.sign_transaction.assert_not_called()
        intent_tuple, block, leaf_index, path = contract.functions.executeDeposit.call_args[0]
        assert intent_tuple[3] == 999_000
        assert (block, leaf_index) == (12, 3)
        assert path == [b"\x01" * 32]

    def test_execute_withdraw_reads_events(self, chain, contract):
        bound_call(contract.functions.executeWithdraw)
        contract.events.WithdrawExecuted.return_value.process_receipt.return_value = [
            {"args": {"amount": 1_003_000}},
        ]
        contract.events.TokensDepositedToL2.return_value.process_receipt.return_value = [
            {"args": {"messageKey": b"\xef" * 32, "messageIndex": 11}},
        ]
        intent = WithdrawIntent(intent_id=1, owner_hash=2, amount=999_000, deadline=1_700_003_600)

        result = chain.execute_withdraw(ADDRESSES.portal, intent, 4, PROOF)

        assert result.withdrawn_amount == 1_003_000
        assert result.message_key == "0x" + "ef" * 32
        assert result.message_index == 11

    def test_missing_event_is_an_error(self, chain, contract):
        bound_call(contract.functions.depositToAztecPrivate)
        contract.events.DepositToAztecPrivate.return_value.process_receipt.return_value = []

        with pytest.raises(TransactionError, match="no DepositToAztecPrivate event"):
            chain.deposit_to_private(ADDRESSES.token_portal, 5_000_000, 4)

    def test_gas_estimation_failure_uses_default(self, chain, contract, user):
        call = bound_call(contract.functions.depositToAztecPrivate)
        call.estimate_gas.side_effect = ValueError("estimation unavailable")
        contract.events.DepositToAztecPrivate.return_value.process_receipt.return_value = [
            {"args": {"messageKey": b"\xab" * 32, "messageIndex": 7}},
        ]

        result = chain.deposit_to_private(ADDRESSES.token_portal, 5_000_000, 4)

        assert result.message_index == 7
        assert user.sign_transaction.call_args[0][0]["gas"] == DEFAULT_GAS

    def test_contract_revert_during_estimation_propagates(self, chain, contract, user):
        call = bound_call(contract.functions.approve)
        call.estimate_gas.side_effect = ContractLogicError("execution reverted: paused")

        with pytest.raises(ContractLogicError):
            chain.approve(ADDRESSES.token, ADDRESSES.token_portal, 1)
        user.sign_transaction.assert_not_called()

    def test_reverted_receipt(self, chain, contract, w3):
        bound_call(contract.functions.approve)
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "transactionHash": TX_HASH}

        with pytest.raises(TransactionError, match="reverted"):
            chain.approve(ADDRESSES.token, ADDRESSES.token_portal, 1)

    def test_signing_failure(self, chain, contract, user):
        bound_call(contract.functions.approve)
        user.sign_transaction.side_effect = RuntimeError("hardware wallet locked")

        with pytest.raises(TransactionError, match="Failed to sign approve"):
            chain.approve(ADDRESSES.token, ADDRESSES.token_portal, 1)


class TestMining:
    def test_mine_block(self, chain, requests_mock):
        requests_mock.post(RPC_URL, json={"jsonrpc": "2.0", "id": 1, "result": "0x0"})
        chain.mine_block()
        assert requests_mock.last_request.json()["method"] == "evm_mine"

    def test_mine_block_error(self, chain, requests_mock):
        requests_mock.post(RPC_URL, json={"jsonrpc": "2.0", "id": 1, "error": {"message": "method not found"}})
        with pytest.raises(TransactionError, match="evm_mine failed"):
            chain.mine_block()
