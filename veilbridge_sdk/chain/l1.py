"""
Web3-backed L1 chain client.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception
from web3.logs import DISCARD
from eth_account import Account

from ..config import validate_rpc_url
from ..crypto import to_bytes32, to_hex32
from ..exceptions import TransactionError
from ..models import (
    DepositIntent, DepositToPrivateEvent, L1DepositToL2Result, L1ExecuteDepositResult,
    L1ExecuteWithdrawResult, MerkleProof, WithdrawIntent,
)
from .interfaces import L1Chain

logger = logging.getLogger(__name__)


class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...


ERC20_ABI = [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

TOKEN_PORTAL_ABI = [
    {
        "inputs": [
            {"name": "_amount", "type": "uint256"},
            {"name": "_secretHashForL2MessageConsumption", "type": "bytes32"},
        ],
        "name": "depositToAztecPrivate",
        "outputs": [
            {"name": "messageKey", "type": "bytes32"},
            {"name": "messageIndex", "type": "uint256"},
        ],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "name": "amount", "type": "uint256"},
            {"indexed": False, "name": "secretHash", "type": "bytes32"},
            {"indexed": False, "name": "messageKey", "type": "bytes32"},
            {"indexed": False, "name": "messageIndex", "type": "uint256"},
        ],
        "name": "DepositToAztecPrivate",
        "type": "event",
    },
]

_PROOF_INPUTS = [
    {"name": "l2BlockNumber", "type": "uint256"},
    {"name": "leafIndex", "type": "uint256"},
    {"name": "siblingPath", "type": "bytes32[]"},
]

PORTAL_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"name": "intentId", "type": "bytes32"},
                    {"name": "ownerHash", "type": "bytes32"},
                    {"name": "asset", "type": "address"},
                    {"name": "amount", "type": "uint128"},
                    {"name": "originalDecimals", "type": "uint8"},
                    {"name": "deadline", "type": "uint64"},
                    {"name": "salt", "type": "bytes32"},
                    {"name": "secretHash", "type": "bytes32"},
                ],
                "name": "intent",
                "type": "tuple",
            },
        ] + _PROOF_INPUTS,
        "name": "executeDeposit",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {
                "components": [
                    {"name": "intentId", "type": "bytes32"},
                    {"name": "ownerHash", "type": "bytes32"},
                    {"name": "amount", "type": "uint128"},
                    {"name": "deadline", "type": "uint64"},
                ],
                "name": "intent",
                "type": "tuple",
            },
            {"name": "secretHash", "type": "bytes32"},
        ] + _PROOF_INPUTS,
        "name": "executeWithdraw",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "intentId", "type": "bytes32"}],
        "name": "getIntentShares",
        "outputs": [{"name": "", "type": "uint128"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "intentId", "type": "bytes32"}],
        "name": "consumedWithdrawIntents",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "intentId", "type": "bytes32"},
            {"indexed": False, "name": "messageLeaf", "type": "bytes32"},
            {"indexed": False, "name": "messageIndex", "type": "uint256"},
        ],
        "name": "L2MessageSent",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "intentId", "type": "bytes32"},
            {"indexed": True, "name": "asset", "type": "address"},
            {"indexed": False, "name": "amount", "type": "uint256"},
        ],
        "name": "WithdrawExecuted",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "intentId", "type": "bytes32"},
            {"indexed": False, "name": "messageKey", "type": "bytes32"},
            {"indexed": False, "name": "messageIndex", "type": "uint256"},
        ],
        "name": "TokensDepositedToL2",
        "type": "event",
    },
]

OUTBOX_ABI = [
    {
        "inputs": [],
        "name": "VERSION",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "_l2BlockNumber", "type": "uint256"},
            {"name": "_leafId", "type": "uint256"},
        ],
        "name": "hasMessageBeenConsumedAtCheckpoint",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "_l2BlockNumber", "type": "uint256"}],
        "name": "getRootData",
        "outputs": [{"name": "", "type": "bytes32"}, {"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

DEFAULT_GAS = 500_000
RECEIPT_TIMEOUT = 120


class Web3L1Chain(L1Chain):
    """
    L1 chain client over a JSON-RPC endpoint.

    Two accounts are used: the user's account for approvals and bridge
    deposits, and a relayer account that executes intents so the user's L1
    address is never linked to them.
    """

    def __init__(
        self,
        rpc_url: str,
        user_key: Optional[str] = None,
        user_signer: Optional[Signer] = None,
        relayer_key: Optional[str] = None,
        relayer_signer: Optional[Signer] = None,
        w3: Optional[Web3] = None,
        retry_count: int = 3,
        timeout: int = 30,
    ):
        """
        Args:
            rpc_url: L1 RPC endpoint (https unless localhost)
            user_key: Private key of the user's account
            user_signer: Custom signer for the user's account
            relayer_key: Private key of the relayer account
            relayer_signer: Custom signer for the relayer account
            w3: Preconfigured Web3 instance, mainly for tests
            retry_count: Number of HTTP retries for node RPC calls
            timeout: Timeout for HTTP requests in seconds

        Raises:
            ValueError: If the user or relayer account is missing, both are the
                same account, or the URL is insecure
        """
        if not user_key and not user_signer:
            raise ValueError("Either user_key or user_signer must be provided")
        validate_rpc_url("rpc_url", rpc_url)

        self.rpc_url = rpc_url
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url))
        self.user_signer: Signer = user_signer or Account.from_key(user_key)
        if relayer_signer is not None:
            self.relayer_signer: Signer = relayer_signer
        elif relayer_key:
            self.relayer_signer = Account.from_key(relayer_key)
        else:
            raise ValueError("Either relayer_key or relayer_signer must be provided")
        if self.relayer_signer.address.lower() == self.user_signer.address.lower():
            raise ValueError("Relayer account must differ from the user account")

        self.session = requests.Session()
        retries = Retry(
            total=retry_count,
            backoff_factor=0.5,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False,
        )
        self.session.mount("http://", HTTPAdapter(max_retries=retries))
        self.session.mount("https://", HTTPAdapter(max_retries=retries))
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _contract(self, address: str, abi: List[Dict[str, Any]]):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def _transact(self, call, signer: Signer, label: str, default_gas: int = DEFAULT_GAS):
        """
        Estimate, sign, send and confirm one contract call.

        Args:
            call: Bound contract function
            signer: Account that signs the transaction
            label: Name used in logs and errors
            default_gas: Gas limit used when estimation fails

        Returns:
            web3 transaction receipt

        Raises:
            TransactionError: If signing or sending fails, or the transaction reverts
        """
        from_address = signer.address
        nonce = self.w3.eth.get_transaction_count(from_address)

        try:
            gas = int(call.estimate_gas({"from": from_address}) * 1.1)
            logger.debug(f"{label}: estimated gas {gas}")
        except ContractLogicError:
            raise
        except Exception as e:
            gas = default_gas
            logger.warning(f"{label}: gas estimation failed, using default {gas}. Error: {e}")

        tx = call.build_transaction({
            "from": from_address,
            "nonce": nonce,
            "gas": gas,
            "gasPrice": self.w3.eth.gas_price,
        })

        try:
            signed_tx = signer.sign_transaction(tx)
        except Exception as e:
            logger.error(f"{label}: signing failed: {e}")
            raise TransactionError(f"Failed to sign {label} transaction: {e}") from e

        raw = getattr(signed_tx, "raw_transaction", None) or getattr(signed_tx, "rawTransaction")
        try:
            tx_hash = self.w3.eth.send_raw_transaction(raw)
        except Web3Exception:
            raise
        except Exception as e:
            logger.error(f"{label}: failed to send transaction: {e}")
            raise TransactionError(f"Failed to send {label} transaction: {e}") from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"{label}: transaction sent {tx_hash_hex}")
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT)
        if receipt["status"] != 1:
            raise TransactionError(f"{label} transaction reverted: {tx_hash_hex}")
        return receipt

    @staticmethod
    def _proof_args(proof: MerkleProof) -> List[Any]:
        return [
            proof.l2_block_number,
            proof.leaf_index,
            [to_bytes32(node) for node in proof.sibling_path],
        ]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def user_address(self) -> str:
        return self.user_signer.address

    def block_timestamp(self) -> int:
        return int(self.w3.eth.get_block("latest")["timestamp"])

    def chain_id(self) -> int:
        return int(self.w3.eth.chain_id)

    def block_number(self) -> int:
        return int(self.w3.eth.block_number)

    def token_balance(self, token: str, owner: str) -> int:
        return self._contract(token, ERC20_ABI).functions.balanceOf(
            Web3.to_checksum_address(owner)
        ).call()

    def token_allowance(self, token: str, owner: str, spender: str) -> int:
        return self._contract(token, ERC20_ABI).functions.allowance(
            Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
        ).call()

    def intent_shares(self, portal: str, intent_id: str) -> int:
        return self._contract(portal, PORTAL_ABI).functions.getIntentShares(to_bytes32(intent_id)).call()

    def is_withdraw_consumed(self, portal: str, intent_id: str) -> bool:
        return bool(
            self._contract(portal, PORTAL_ABI).functions.consumedWithdrawIntents(to_bytes32(intent_id)).call()
        )

    def outbox_version(self, outbox: str) -> int:
        return self._contract(outbox, OUTBOX_ABI).functions.VERSION().call()

    def has_message_been_consumed(self, outbox: str, l2_block_number: int, leaf_id: int) -> bool:
        return bool(
            self._contract(outbox, OUTBOX_ABI).functions.hasMessageBeenConsumedAtCheckpoint(
                l2_block_number, leaf_id
            ).call()
        )

    def is_checkpoint_proven(self, outbox: str, l2_block_number: int) -> bool:
        # getRootData reverts until the checkpoint holding the block is proven
        try:
            self._contract(outbox, OUTBOX_ABI).functions.getRootData(l2_block_number).call()
            return True
        except ContractLogicError as e:
            logger.debug(f"getRootData({l2_block_number}) reverted: {e}")
            return False

    def deposit_to_private_events(self, token_portal: str, from_block: int = 0) -> List[DepositToPrivateEvent]:
        contract = self._contract(token_portal, TOKEN_PORTAL_ABI)
        topic = Web3.to_hex(Web3.keccak(text="DepositToAztecPrivate(uint256,bytes32,bytes32,uint256)"))
        logs = self.w3.eth.get_logs({
            "address": contract.address,
            "fromBlock": from_block,
            "toBlock": "latest",
            "topics": [topic],
        })
        events = []
        for log in logs:
            decoded = contract.events.DepositToAztecPrivate().process_log(log)
            args = decoded["args"]
            events.append(DepositToPrivateEvent(
                message_key=to_hex32(args["messageKey"]),
                message_index=args["messageIndex"],
                amount=args["amount"],
                secret_hash=to_hex32(args["secretHash"]),
                tx_hash=Web3.to_hex(decoded["transactionHash"]),
                block_number=decoded["blockNumber"],
            ))
        return events

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def approve(self, token: str, spender: str, amount: int) -> str:
        call = self._contract(token, ERC20_ABI).functions.approve(Web3.to_checksum_address(spender), amount)
        receipt = self._transact(call, self.user_signer, "approve", default_gas=100_000)
        return Web3.to_hex(receipt["transactionHash"])

    def deposit_to_private(self, token_portal: str, amount: int, secret_hash: int) -> L1DepositToL2Result:
        contract = self._contract(token_portal, TOKEN_PORTAL_ABI)
        call = contract.functions.depositToAztecPrivate(amount, to_bytes32(secret_hash))
        receipt = self._transact(call, self.user_signer, "depositToAztecPrivate")

        events = contract.events.DepositToAztecPrivate().process_receipt(receipt, errors=DISCARD)
        if not events:
            raise TransactionError("depositToAztecPrivate receipt has no DepositToAztecPrivate event")
        args = events[0]["args"]
        return L1DepositToL2Result(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            message_key=to_hex32(args["messageKey"]),
            message_index=args["messageIndex"],
        )

    def execute_deposit(self, portal: str, intent: DepositIntent, proof: MerkleProof) -> L1ExecuteDepositResult:
        contract = self._contract(portal, PORTAL_ABI)
        intent_tuple = (
            to_bytes32(intent.intent_id),
            to_bytes32(intent.owner_hash),
            Web3.to_checksum_address(intent.asset),
            intent.amount,
            intent.original_decimals,
            intent.deadline,
            to_bytes32(intent.salt),
            to_bytes32(intent.secret_hash),
        )
        call = contract.functions.executeDeposit(intent_tuple, *self._proof_args(proof))
        receipt = self._transact(call, self.relayer_signer, "executeDeposit", default_gas=1_500_000)

        events = contract.events.L2MessageSent().process_receipt(receipt, errors=DISCARD)
        if not events:
            raise TransactionError("executeDeposit receipt has no L2MessageSent event")
        args = events[0]["args"]
        return L1ExecuteDepositResult(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            message_leaf=to_hex32(args["messageLeaf"]),
            message_index=args["messageIndex"],
        )

    def execute_withdraw(
        self,
        portal: str,
        intent: WithdrawIntent,
        secret_hash: int,
        proof: MerkleProof,
    ) -> L1ExecuteWithdrawResult:
        contract = self._contract(portal, PORTAL_ABI)
        intent_tuple = (
            to_bytes32(intent.intent_id),
            to_bytes32(intent.owner_hash),
            intent.amount,
            intent.deadline,
        )
        call = contract.functions.executeWithdraw(intent_tuple, to_bytes32(secret_hash), *self._proof_args(proof))
        receipt = self._transact(call, self.relayer_signer, "executeWithdraw", default_gas=1_500_000)

        withdrawn_amount = intent.amount
        executed = contract.events.WithdrawExecuted().process_receipt(receipt, errors=DISCARD)
        if executed:
            withdrawn_amount = executed[0]["args"]["amount"]

        bridged = contract.events.TokensDepositedToL2().process_receipt(receipt, errors=DISCARD)
        if not bridged:
            raise TransactionError("executeWithdraw receipt has no TokensDepositedToL2 event")
        args = bridged[0]["args"]
        return L1ExecuteWithdrawResult(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            withdrawn_amount=withdrawn_amount,
            message_key=to_hex32(args["messageKey"]),
            message_index=args["messageIndex"],
        )

    def mine_block(self) -> None:
        response = self.session.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "id": 1, "method": "evm_mine", "params": []},
            timeout=self.timeout,
        )
        response.raise_for_status()
        body = response.json()
        if body.get("error"):
            raise TransactionError(f"evm_mine failed: {body['error']}")
