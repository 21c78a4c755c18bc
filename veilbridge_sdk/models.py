"""
Data models for the VeilBridge SDK.

Persisted records use camelCase aliases so that ledgers written by other
clients of the same protocol can be read back unchanged.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class IntentStatus(str, Enum):
    """Lifecycle of a position note on L2"""
    PENDING_DEPOSIT = "PendingDeposit"
    CONFIRMED = "Confirmed"
    PENDING_WITHDRAW = "PendingWithdraw"
    CANCELLED = "Cancelled"
    WITHDRAWN = "Withdrawn"


class DepositProofStatus(str, Enum):
    WAITING_FOR_PROOF = "waiting_for_proof"
    WAITING_FOR_CHECKPOINT = "waiting_for_checkpoint"
    READY = "ready"
    ERROR = "error"


class PendingBridgeStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    UNKNOWN = "unknown"


class PendingDeposit(BaseModel):
    """Snapshot written after Phase 1 so Phase 2 can resume after a restart"""
    intent_id: str = Field(..., alias="intentId")
    owner_hash: str = Field(..., alias="ownerHash")
    asset: str
    amount: int
    net_amount: int = Field(..., alias="netAmount")
    original_decimals: int = Field(..., alias="originalDecimals")
    deadline: int
    salt: str
    secret_hash: str = Field(..., alias="secretHash")
    l2_block_number: int = Field(..., alias="l2BlockNumber")
    l2_contract_address: str = Field(..., alias="l2ContractAddress")
    l2_tx_hash: str = Field(..., alias="l2TxHash")
    created_at: int = Field(..., alias="createdAt")

    class Config:
        populate_by_name = True
        frozen = True


class Position(BaseModel):
    """Local view of a position note held by the L2 wallet"""
    intent_id: str = Field(..., alias="intentId")
    asset_id: str = Field(..., alias="assetId")
    shares: int
    status: IntentStatus
    withdraw_deadline: Optional[int] = Field(None, alias="withdrawDeadline")

    class Config:
        populate_by_name = True


class SecretEntry(BaseModel):
    """Decrypted secret with the key it is stored under"""
    key: str
    secret_hex: str = Field(..., alias="secretHex")
    owner_address: str = Field(..., alias="ownerAddress")
    stored_at: int = Field(0, alias="storedAt")

    class Config:
        populate_by_name = True


class L2ToL1MembershipWitness(BaseModel):
    """Outbox membership witness returned by the L2 node"""
    leaf_index: int = Field(..., alias="leafIndex")
    sibling_path: List[str] = Field(default_factory=list, alias="siblingPath")
    root: Optional[str] = None

    class Config:
        populate_by_name = True


class L2ToL1MessageProof(BaseModel):
    """Outcome of waiting for an L2→L1 message proof"""
    success: bool
    l2_block_number: Optional[int] = None
    leaf_index: Optional[int] = None
    sibling_path: Optional[List[str]] = None
    error: Optional[str] = None


class DepositProofCheckResult(BaseModel):
    status: DepositProofStatus
    message: str
    l2_block_number: Optional[int] = None


class MessageReadiness(BaseModel):
    """Readiness of an L1→L2 message on the L2 node"""
    ready: bool
    current_block: Optional[int] = None
    available_at_block: Optional[int] = None
    leaf_index: Optional[int] = None


class DepositToPrivateEvent(BaseModel):
    """``DepositToAztecPrivate`` event emitted by the token portal"""
    message_key: str = Field(..., alias="messageKey")
    message_index: int = Field(..., alias="messageIndex")
    amount: int
    secret_hash: str = Field(..., alias="secretHash")
    tx_hash: str = Field(..., alias="txHash")
    block_number: int = Field(..., alias="blockNumber")

    class Config:
        populate_by_name = True


class PendingBridge(BaseModel):
    """L1→L2 bridge deposit whose claim secret is still held locally"""
    message_key: str = Field(..., alias="messageKey")
    message_index: int = Field(..., alias="messageIndex")
    amount: int
    l1_tx_hash: str = Field(..., alias="l1TxHash")
    l1_block_number: int = Field(..., alias="l1BlockNumber")
    secret_hash: str = Field(..., alias="secretHash")
    secret: str
    status: PendingBridgeStatus = PendingBridgeStatus.UNKNOWN
    leaf_index: Optional[int] = Field(None, alias="leafIndex")

    class Config:
        populate_by_name = True


class PendingBridgeScanResult(BaseModel):
    bridges: List[PendingBridge] = Field(default_factory=list)
    total_events: int = 0
    matched_events: int = 0


# ---------------------------------------------------------------------------
# Intents and proofs submitted to the L1 portal
# ---------------------------------------------------------------------------

class DepositIntent(BaseModel):
    """Deposit intent as committed to by the L2→L1 message"""
    intent_id: int
    owner_hash: int
    asset: str
    amount: int
    original_decimals: int
    deadline: int
    salt: int
    secret_hash: int


class WithdrawIntent(BaseModel):
    intent_id: int
    owner_hash: int
    amount: int
    deadline: int


class MerkleProof(BaseModel):
    """Outbox inclusion proof for an L2→L1 message"""
    l2_block_number: int
    leaf_index: int
    sibling_path: List[str]


# ---------------------------------------------------------------------------
# L1 transaction outcomes
# ---------------------------------------------------------------------------

class L1DepositToL2Result(BaseModel):
    """``depositToAztecPrivate`` outcome"""
    tx_hash: str
    message_key: str
    message_index: int


class L1ExecuteDepositResult(BaseModel):
    tx_hash: str
    message_leaf: str
    message_index: int


class L1ExecuteWithdrawResult(BaseModel):
    tx_hash: str
    withdrawn_amount: int
    message_key: str
    message_index: int


# ---------------------------------------------------------------------------
# L2 call outcomes
# ---------------------------------------------------------------------------

class L2TxResult(BaseModel):
    tx_hash: str
    block_number: Optional[int] = None


class L2RequestResult(BaseModel):
    """Outcome of ``request_deposit`` / ``request_withdraw``"""
    intent_id: str
    tx_hash: str
    block_number: Optional[int] = None


# ---------------------------------------------------------------------------
# Flow results
# ---------------------------------------------------------------------------

class BridgeResult(BaseModel):
    secret: int
    secret_hash: int
    amount: int
    message_key: str
    message_index: int
    claimed: bool
    tx_hashes: Dict[str, str] = Field(default_factory=dict)


class DepositPhase1Result(BaseModel):
    pending_deposit: PendingDeposit
    secret: int
    secret_hash: int


class DepositPhase2Result(BaseModel):
    intent_id: str
    shares: int
    finalized: bool = False
    skipped: bool = False
    tx_hashes: Dict[str, str] = Field(default_factory=dict)


class DepositResult(BaseModel):
    intent_id: str
    secret: int
    secret_hash: int
    shares: int
    finalized: bool = False
    tx_hashes: Dict[str, str] = Field(default_factory=dict)


class WithdrawResult(BaseModel):
    intent_id: str
    secret: int
    secret_hash: int
    amount: int
    message_key: Optional[str] = None
    already_executed: bool = False
    tx_hashes: Dict[str, str] = Field(default_factory=dict)


class CancelDepositResult(BaseModel):
    intent_id: str
    refunded_amount: int
    tx_hash: str


class ClaimRefundResult(BaseModel):
    original_nonce: str
    new_nonce: str
    shares: int
    tx_hash: str


class ClaimResult(BaseModel):
    amount: int
    tx_hash: str


class BridgeClaimResult(BaseModel):
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None
