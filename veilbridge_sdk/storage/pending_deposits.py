"""
Ledger of deposits waiting for Phase 2.
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..models import PendingDeposit
from .json_store import JsonFileStore

logger = logging.getLogger(__name__)

_KEY = "pendingDeposits"


def _same_intent(record: Dict[str, Any], intent_id: str) -> bool:
    return str(record.get("intentId", "")).lower() == intent_id.lower()


class PendingDepositLedger:
    """
    Snapshots written by deposit Phase 1 and removed by Phase 2 or cancel.

    Intent ids are compared case-insensitively. Records that no longer
    validate are skipped on read and left on disk untouched.
    """

    def __init__(self, store_path: Optional[str] = None):
        self._store = JsonFileStore("pending_deposits.json", {_KEY: []}, store_path)

    @property
    def store_path(self):
        return self._store.store_path

    def _records(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        records = data.get(_KEY)
        if not isinstance(records, list):
            records = []
            data[_KEY] = records
        return records

    def save(self, pending: PendingDeposit) -> None:
        """Store a snapshot, replacing any earlier one for the same intent."""
        record = pending.model_dump(by_alias=True)

        def mutate(data):
            records = [r for r in self._records(data) if not _same_intent(r, pending.intent_id)]
            records.append(record)
            data[_KEY] = records

        self._store.update(mutate)
        logger.debug(f"Saved pending deposit {pending.intent_id[:16]}...")

    def list(self) -> List[PendingDeposit]:
        deposits = []
        for record in self._records(self._store.read()):
            try:
                deposits.append(PendingDeposit.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping invalid pending deposit record: {e.error_count()} error(s)")
        return deposits

    def get(self, intent_id: str) -> Optional[PendingDeposit]:
        for pending in self.list():
            if pending.intent_id.lower() == intent_id.lower():
                return pending
        return None

    def has(self, intent_id: str) -> bool:
        return self.get(intent_id) is not None

    def remove(self, intent_id: str) -> bool:
        """
        Delete the snapshot for an intent.

        Returns:
            True if a record was removed
        """
        def mutate(data):
            records = self._records(data)
            kept = [r for r in records if not _same_intent(r, intent_id)]
            data[_KEY] = kept
            return len(kept) != len(records)

        removed = self._store.update(mutate)
        if removed:
            logger.debug(f"Removed pending deposit {intent_id[:16]}...")
        return removed

    def clear(self) -> None:
        self._store.clear()
