"""
Secret and intent primitives.

Field hashing (the L2's Poseidon2 family) is supplied by the caller through
the :class:`FieldHasher` protocol. SHA-256 based commitments, which the L1
portal recomputes in Solidity, are implemented here directly.
"""
import hashlib
import logging
import secrets
import warnings
from dataclasses import dataclass
from typing import Protocol, Sequence, Union

from web3 import Web3

logger = logging.getLogger(__name__)

# BN254 scalar field modulus used by the L2
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Domain separator for the default hasher's secret hash
_SECRET_HASH_SEPARATOR = 0x7365637265745f68617368  # b"secret_hash"

FieldLike = Union[int, str, bytes]


class FieldHasher(Protocol):
    """Hash functions provided by the L2 toolchain."""

    def hash(self, fields: Sequence[int]) -> int:
        """Hash a sequence of field elements to one field element"""
        ...

    def secret_hash(self, secret: int) -> int:
        """Commitment to a claim secret"""
        ...


class KeccakFieldHasher:
    """
    Keccak-256 reduced into the scalar field.

    Suitable for devnets and tests where the L2 contracts are configured with
    the same hasher; production deployments pass the L2's own implementation.
    """

    def hash(self, fields: Sequence[int]) -> int:
        packed = b"".join(to_bytes32(f) for f in fields)
        return int.from_bytes(Web3.keccak(primitive=packed), "big") % FIELD_MODULUS

    def secret_hash(self, secret: int) -> int:
        return self.hash([_SECRET_HASH_SEPARATOR, secret])


@dataclass(frozen=True)
class SecretPair:
    """Random claim secret and its commitment"""
    secret: int
    secret_hash: int


def to_field(value: FieldLike) -> int:
    """
    Coerce an int, 0x-prefixed hex string or raw bytes into an integer.

    Raises:
        ValueError: If a string is not valid hex
    """
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    text = value.strip()
    if text.startswith(("0x", "0X")):
        text = text[2:]
    if not text:
        return 0
    return int(text, 16)


def to_bytes32(value: FieldLike) -> bytes:
    """Encode a value as a 32-byte big-endian word."""
    number = to_field(value)
    if number < 0 or number >= 2 ** 256:
        raise ValueError(f"Value does not fit in 32 bytes: {number}")
    return number.to_bytes(32, "big")


def to_hex32(value: FieldLike) -> str:
    """Encode a value as a 0x-prefixed, zero-padded 32-byte hex string."""
    return "0x" + to_bytes32(value).hex()


def generate_secret_pair(hasher: FieldHasher) -> SecretPair:
    """
    Draw a random field element and commit to it.

    Args:
        hasher: L2 hash provider

    Returns:
        SecretPair with the secret and its hash
    """
    secret = secrets.randbelow(FIELD_MODULUS - 1) + 1
    return SecretPair(secret=secret, secret_hash=hasher.secret_hash(secret))


def compute_owner_hash(hasher: FieldHasher, owner: FieldLike, intent_id: FieldLike = None) -> int:
    """
    Privacy-preserving commitment to the intent owner.

    The per-intent form ``hash(owner, intent_id)`` gives every intent an
    unlinkable owner hash. Calling without ``intent_id`` produces the
    deprecated single-argument form ``hash(owner)``, which is identical across
    all intents of one owner.

    Args:
        hasher: L2 hash provider
        owner: L2 address of the owner
        intent_id: Intent identifier returned by the L2 request

    Returns:
        Owner hash as a field element
    """
    if intent_id is None:
        warnings.warn(
            "compute_owner_hash without intent_id links all intents of an owner; "
            "pass the intent_id returned by the L2 request",
            DeprecationWarning,
            stacklevel=2,
        )
        return hasher.hash([to_field(owner)])
    return hasher.hash([to_field(owner), to_field(intent_id)])


def compute_salt(hasher: FieldHasher, caller: FieldLike, secret_hash: FieldLike) -> int:
    """Salt bound to both the caller and the secret commitment."""
    return hasher.hash([to_field(caller), to_field(secret_hash)])


def sha256_to_field(data: bytes) -> int:
    """SHA-256 truncated to its first 31 bytes so the result fits in the field."""
    return int.from_bytes(hashlib.sha256(data).digest()[:31], "big")


def compute_content_hash(fields: Sequence[FieldLike]) -> int:
    """
    Hash message content the way the L2 contract and L1 portal do.

    Each field is packed as a 32-byte big-endian word; field order is part of
    the cross-chain message format.
    """
    packed = b"".join(to_bytes32(f) for f in fields)
    return sha256_to_field(packed)


def compute_deposit_content_hash(
    intent_id: FieldLike,
    owner_hash: FieldLike,
    asset: FieldLike,
    net_amount: int,
    original_decimals: int,
    deadline: int,
    salt: FieldLike,
    secret_hash: FieldLike,
) -> int:
    """Content hash of a deposit intent (8 words, 256 bytes)."""
    return compute_content_hash([
        intent_id, owner_hash, asset, net_amount, original_decimals, deadline, salt, secret_hash,
    ])


def compute_withdraw_content_hash(
    intent_id: FieldLike,
    owner_hash: FieldLike,
    amount: int,
    deadline: int,
    asset_id: FieldLike,
    secret_hash: FieldLike,
) -> int:
    """Content hash of a withdraw intent (6 words, 192 bytes)."""
    return compute_content_hash([intent_id, owner_hash, amount, deadline, asset_id, secret_hash])


def compute_l2_to_l1_message_hash(
    l2_sender: FieldLike,
    l1_recipient: FieldLike,
    content: FieldLike,
    rollup_version: int,
    chain_id: int,
) -> int:
    """
    Leaf hash of an L2→L1 message in the outbox tree.

    Args:
        l2_sender: Address of the L2 contract that emitted the message
        l1_recipient: L1 contract allowed to consume it
        content: Content hash of the message
        rollup_version: Rollup version reported by the outbox
        chain_id: L1 chain id

    Returns:
        Message hash as a field element
    """
    return compute_content_hash([l2_sender, rollup_version, l1_recipient, chain_id, content])


def compute_leaf_id(leaf_index: int, path_size: int) -> int:
    """Outbox leaf id, stable across proofs of different depth."""
    return 2 ** path_size + leaf_index


def compute_deposit_message_hash(pending, l1_recipient: FieldLike, rollup_version: int, chain_id: int) -> int:
    """
    L2→L1 message hash of a persisted pending deposit.

    Args:
        pending: PendingDeposit snapshot from Phase 1
        l1_recipient: Portal address that consumes the message
        rollup_version: Outbox rollup version
        chain_id: L1 chain id
    """
    content = compute_deposit_content_hash(
        pending.intent_id,
        pending.owner_hash,
        pending.asset,
        pending.net_amount,
        pending.original_decimals,
        pending.deadline,
        pending.salt,
        pending.secret_hash,
    )
    return compute_l2_to_l1_message_hash(
        pending.l2_contract_address, l1_recipient, content, rollup_version, chain_id
    )
