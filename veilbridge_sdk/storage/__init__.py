"""
Local persistence: pending deposits, positions and encrypted secrets.
"""
from .json_store import JsonFileStore
from .pending_deposits import PendingDepositLedger
from .positions import PositionBook
from .secrets import SecretStore, derive_owner_key

__all__ = [
    "JsonFileStore",
    "PendingDepositLedger",
    "PositionBook",
    "SecretStore",
    "derive_owner_key",
]
