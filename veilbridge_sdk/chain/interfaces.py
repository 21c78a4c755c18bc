"""
Interfaces to the two chains.

The flows only talk to these abstract classes. ``Web3L1Chain`` and
``JsonRpcL2Node`` implement the chain side; L2 contract clients are supplied
by the application, which owns the L2 wallet and proving toolchain.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import (
    DepositIntent, DepositToPrivateEvent, L1DepositToL2Result, L1ExecuteDepositResult,
    L1ExecuteWithdrawResult, L2RequestResult, L2ToL1MembershipWitness, L2TxResult,
    MerkleProof, WithdrawIntent,
)


class L1Chain(ABC):
    """
    Settlement chain reads and writes used by the flows.

    Writes that reveal the user (approve, bridge deposit) are sent from the
    user's account; intent execution is sent from the relayer account so the
    user's L1 address never appears next to an intent.
    """

    @property
    @abstractmethod
    def user_address(self) -> str:
        """L1 address of the user's account"""
        pass

    @abstractmethod
    def block_timestamp(self) -> int:
        """Timestamp of the latest L1 block, in seconds"""
        pass

    @abstractmethod
    def chain_id(self) -> int:
        pass

    @abstractmethod
    def block_number(self) -> int:
        pass

    @abstractmethod
    def token_balance(self, token: str, owner: str) -> int:
        pass

    @abstractmethod
    def token_allowance(self, token: str, owner: str, spender: str) -> int:
        pass

    @abstractmethod
    def approve(self, token: str, spender: str, amount: int) -> str:
        """
        Approve ``spender`` for ``amount`` from the user account.

        Returns:
            Transaction hash
        """
        pass

    @abstractmethod
    def deposit_to_private(self, token_portal: str, amount: int, secret_hash: int) -> L1DepositToL2Result:
        """Bridge tokens to a private L2 balance claimable with ``secret_hash``."""
        pass

    @abstractmethod
    def execute_deposit(self, portal: str, intent: DepositIntent, proof: MerkleProof) -> L1ExecuteDepositResult:
        """Consume a deposit intent from the outbox through the relayer."""
        pass

    @abstractmethod
    def execute_withdraw(
        self,
        portal: str,
        intent: WithdrawIntent,
        secret_hash: int,
        proof: MerkleProof,
    ) -> L1ExecuteWithdrawResult:
        """Consume a withdraw intent from the outbox through the relayer."""
        pass

    @abstractmethod
    def intent_shares(self, portal: str, intent_id: str) -> int:
        pass

    @abstractmethod
    def is_withdraw_consumed(self, portal: str, intent_id: str) -> bool:
        """Whether the portal already executed a withdrawal for ``intent_id``."""
        pass

    @abstractmethod
    def outbox_version(self, outbox: str) -> int:
        pass

    @abstractmethod
    def has_message_been_consumed(self, outbox: str, l2_block_number: int, leaf_id: int) -> bool:
        pass

    @abstractmethod
    def is_checkpoint_proven(self, outbox: str, l2_block_number: int) -> bool:
        """Whether the outbox holds a root for ``l2_block_number``."""
        pass

    @abstractmethod
    def deposit_to_private_events(self, token_portal: str, from_block: int = 0) -> List[DepositToPrivateEvent]:
        pass

    @abstractmethod
    def mine_block(self) -> None:
        """Ask a development node to mine one block."""
        pass


class L2Node(ABC):
    """
    Read access to an L2 node.

    Nodes that also expose ``get_l1_to_l2_membership_witness(block_number,
    message_leaf)`` let message waits confirm consumability instead of
    trusting the block comparison alone.
    """

    @abstractmethod
    def get_block_number(self) -> int:
        pass

    @abstractmethod
    def get_l1_to_l2_message_block(self, message_leaf: str) -> Optional[int]:
        """L2 block from which an L1→L2 message can be consumed, or None if not indexed."""
        pass

    @abstractmethod
    def get_l2_to_l1_membership_witness(
        self,
        block_number: int,
        message_hash: int,
    ) -> Optional[L2ToL1MembershipWitness]:
        """Outbox membership witness for a message in one L2 block, or None."""
        pass


class PrivacyWrapperContract(ABC):
    """Client for the L2 privacy wrapper contract."""

    @property
    @abstractmethod
    def address(self) -> str:
        pass

    @abstractmethod
    def request_deposit(
        self,
        asset: str,
        amount: int,
        original_decimals: int,
        deadline: int,
        secret_hash: int,
    ) -> L2RequestResult:
        pass

    @abstractmethod
    def finalize_deposit(
        self,
        intent_id: str,
        asset_id: str,
        shares: int,
        secret: int,
        message_leaf_index: int,
    ) -> L2TxResult:
        pass

    @abstractmethod
    def request_withdraw(self, nonce: str, amount: int, deadline: int, secret_hash: int) -> L2RequestResult:
        pass

    @abstractmethod
    def cancel_deposit(self, intent_id: str, current_time: int, net_amount: int) -> L2TxResult:
        pass

    @abstractmethod
    def claim_refund(self, nonce: str, current_time: int) -> L2TxResult:
        pass


class BridgedTokenContract(ABC):
    """Client for the L2 bridged token contract."""

    @abstractmethod
    def claim_private(self, amount: int, secret: int, message_leaf_index: int) -> L2TxResult:
        pass
