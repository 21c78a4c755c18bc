"""
Encrypted storage for claim secrets.

Each secret is sealed with a NaCl secret box whose key is derived from the
owner's L2 address (and an optional passphrase) with PBKDF2-HMAC-SHA256.
Entries are keyed by intent id for deposits and by L1→L2 message key for
withdrawals and bridges; an entry only decrypts for the owner that stored it.
"""
import os
import base64
import json
import logging
import threading
import time
from typing import Dict, List, Optional, Tuple

import nacl.exceptions
import nacl.secret
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..models import SecretEntry
from .json_store import JsonFileStore

logger = logging.getLogger(__name__)

_KEY = "secrets"
_KDF_SALT = b"veilbridge-secrets-v1"
_KDF_ITERATIONS = 100_000
FORMAT_VERSION = 1

# Derived keys per (passphrase, owner); derivation costs ~100k hash rounds
_key_cache: Dict[Tuple[str, str], bytes] = {}
_key_cache_lock = threading.Lock()


def derive_owner_key(owner_address: str, passphrase: str = "") -> bytes:
    """
    Derive the secret box key for one owner.

    Args:
        owner_address: L2 address of the owner
        passphrase: Optional extra key material

    Returns:
        32-byte key
    """
    cache_key = (passphrase, owner_address.lower())
    with _key_cache_lock:
        cached = _key_cache.get(cache_key)
    if cached is not None:
        return cached

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=nacl.secret.SecretBox.KEY_SIZE,
        salt=_KDF_SALT,
        iterations=_KDF_ITERATIONS,
    )
    key = kdf.derive(f"{passphrase}:{owner_address.lower()}".encode("utf-8"))
    with _key_cache_lock:
        _key_cache[cache_key] = key
    return key


def _require(name: str, value: str):
    if not value or not value.strip():
        raise ValueError(f"{name} is required")


class SecretStore:
    """Store of claim secrets, encrypted per owner."""

    def __init__(self, store_path: Optional[str] = None, passphrase: Optional[str] = None):
        """
        Args:
            store_path: Full path overriding ``~/.veilbridge/secrets.json``
            passphrase: Extra key material; defaults to ``VEILBRIDGE_SECRET_PASSPHRASE``
        """
        self._store = JsonFileStore("secrets.json", {_KEY: []}, store_path)
        if passphrase is None:
            passphrase = os.environ.get("VEILBRIDGE_SECRET_PASSPHRASE", "")
        self._passphrase = passphrase

    def _box(self, owner_address: str) -> nacl.secret.SecretBox:
        return nacl.secret.SecretBox(derive_owner_key(owner_address, self._passphrase))

    def _records(self) -> List[Dict]:
        records = self._store.read().get(_KEY, [])
        return [
            r for r in records
            if isinstance(r, dict) and isinstance(r.get("key"), str) and isinstance(r.get("encrypted"), str)
        ]

    def _decrypt(self, record: Dict, owner_address: str) -> SecretEntry:
        encrypted = base64.b64decode(record["encrypted"])
        payload = json.loads(self._box(owner_address).decrypt(encrypted).decode("utf-8"))
        return SecretEntry(
            key=record["key"],
            secret_hex=payload["secretHex"],
            owner_address=owner_address,
            stored_at=record.get("storedAt", 0),
        )

    def store(self, key: str, secret_hex: str, owner_address: str) -> None:
        """
        Encrypt and store a secret, replacing any earlier one under ``key``.

        Raises:
            ValueError: If any argument is empty
        """
        _require("key", key)
        _require("secret_hex", secret_hex)
        _require("owner_address", owner_address)

        plaintext = json.dumps({"secretHex": secret_hex}).encode("utf-8")
        record = {
            "key": key.lower(),
            "encrypted": base64.b64encode(self._box(owner_address).encrypt(plaintext)).decode("ascii"),
            "storedAt": int(time.time() * 1000),
            "version": FORMAT_VERSION,
        }

        def mutate(data):
            records = [r for r in data.get(_KEY, []) if r.get("key") != key.lower()]
            records.append(record)
            data[_KEY] = records

        self._store.update(mutate)
        logger.debug(f"Stored secret for {key[:16]}...")

    def get(self, key: str, owner_address: str) -> Optional[SecretEntry]:
        """
        Look up and decrypt a secret.

        Returns:
            The entry, or None if there is none or it belongs to another owner
        """
        if not key or not key.strip() or not owner_address or not owner_address.strip():
            return None
        for record in self._records():
            if record["key"] == key.lower():
                try:
                    return self._decrypt(record, owner_address)
                except (nacl.exceptions.CryptoError, ValueError, KeyError) as e:
                    logger.warning(f"Failed to decrypt secret for {key[:16]}...: {e}")
                    return None
        return None

    def has(self, key: str) -> bool:
        return any(r["key"] == key.lower() for r in self._records())

    def remove(self, key: str) -> bool:
        def mutate(data):
            records = data.get(_KEY, [])
            kept = [r for r in records if r.get("key") != key.lower()]
            data[_KEY] = kept
            return len(kept) != len(records)

        removed = self._store.update(mutate)
        if removed:
            logger.debug(f"Removed secret for {key[:16]}...")
        return removed

    def list_keys(self) -> List[str]:
        return [r["key"] for r in self._records()]

    def get_all(self, owner_address: str) -> List[SecretEntry]:
        """Every secret that decrypts for ``owner_address``."""
        entries = []
        for record in self._records():
            try:
                entries.append(self._decrypt(record, owner_address))
            except (nacl.exceptions.CryptoError, ValueError, KeyError):
                continue
        return entries

    def clear(self) -> None:
        self._store.clear()
