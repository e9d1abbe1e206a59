"""Local key-value storage and the persisted record collection."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import StorageReadError, StorageWriteError
from .table import TableModel

logger = logging.getLogger(__name__)


class LocalStore:
    """
    Directory-backed string store, one `<key>.json` file per key.

    Mirrors browser local storage: values are opaque strings and a write
    replaces the whole value for that key.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key is absent."""
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadError(f"Could not read {path}: {e}") from e

    def set_item(self, key: str, value: str):
        """Replace the value stored under key."""
        path = self._path(key)
        tmp_path = path.with_suffix('.json.tmp')
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding='utf-8')
            tmp_path.replace(path)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise StorageWriteError(f"Could not save to {path}: {e}") from e


@dataclass(frozen=True)
class PersistedRecord:
    """One saved snapshot of a table."""
    id: int
    timestamp: str
    data: TableModel

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'timestamp': self.timestamp, 'data': self.data.to_dict()}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'PersistedRecord':
        if not isinstance(raw, dict):
            raise ValueError("Record must be an object")
        record_id, timestamp = raw.get('id'), raw.get('timestamp')
        if isinstance(record_id, bool) or not isinstance(record_id, int):
            raise ValueError(f"Invalid record id {record_id!r}")
        if not isinstance(timestamp, str):
            raise ValueError(f"Invalid record timestamp {timestamp!r}")
        return cls(id=record_id, timestamp=timestamp, data=TableModel.from_dict(raw.get('data')))


def decode_records(text: Optional[str]) -> List[PersistedRecord]:
    """
    Parse a serialized collection.

    Raises:
        StorageReadError: If the text is not a valid collection
    """
    if text is None:
        return []
    try:
        raw = json.loads(text)
        if not isinstance(raw, list):
            raise ValueError("Collection must be a JSON array")
        return [PersistedRecord.from_dict(item) for item in raw]
    except ValueError as e:
        # json.JSONDecodeError is a ValueError subclass
        raise StorageReadError(f"Corrupt record collection: {e}") from e


def encode_records(records: List[PersistedRecord]) -> str:
    return json.dumps([record.to_dict() for record in records], ensure_ascii=False)


def load_records(store: LocalStore, key: str) -> List[PersistedRecord]:
    """Load the collection, treating missing or corrupt data as empty."""
    try:
        return decode_records(store.get_item(key))
    except StorageReadError as e:
        logger.warning(f"Ignoring unreadable collection '{key}': {e}")
        return []
