"""
Local book of position notes.
"""
import logging
from typing import List, Optional

from pydantic import ValidationError

from ..models import IntentStatus, Position
from .json_store import JsonFileStore

logger = logging.getLogger(__name__)

_KEY = "positions"


class PositionBook:
    """Positions keyed by the lower-cased deposit intent id."""

    def __init__(self, store_path: Optional[str] = None):
        self._store = JsonFileStore("positions.json", {_KEY: {}}, store_path)

    def upsert(self, position: Position) -> None:
        record = position.model_dump(by_alias=True, mode="json")

        def mutate(data):
            data.setdefault(_KEY, {})[position.intent_id.lower()] = record

        self._store.update(mutate)
        logger.debug(f"Position {position.intent_id[:16]}... -> {position.status.value}")

    def get(self, intent_id: str) -> Optional[Position]:
        record = self._store.read().get(_KEY, {}).get(intent_id.lower())
        if record is None:
            return None
        return Position.model_validate(record)

    def list(self, status: Optional[IntentStatus] = None) -> List[Position]:
        positions = []
        for record in self._store.read().get(_KEY, {}).values():
            try:
                position = Position.model_validate(record)
            except ValidationError as e:
                logger.warning(f"Skipping invalid position record: {e.error_count()} error(s)")
                continue
            if status is None or position.status == status:
                positions.append(position)
        return positions

    def set_status(self, intent_id: str, status: IntentStatus, shares: Optional[int] = None) -> Optional[Position]:
        """
        Move a known position to ``status``.

        Returns:
            The updated position, or None if the intent is unknown
        """
        def mutate(data):
            record = data.setdefault(_KEY, {}).get(intent_id.lower())
            if record is None:
                return None
            record["status"] = IntentStatus(status).value
            if shares is not None:
                record["shares"] = shares
            return Position.model_validate(record)

        return self._store.update(mutate)

    def remove(self, intent_id: str) -> bool:
        def mutate(data):
            return data.setdefault(_KEY, {}).pop(intent_id.lower(), None) is not None

        return self._store.update(mutate)

    def clear(self) -> None:
        self._store.clear()
