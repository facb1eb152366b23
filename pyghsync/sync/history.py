"""Append-only history of pushes and pulls."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..exceptions import SyncStateError
from ..utils import parse_history_timestamp, read_json, write_json_atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """One completed push or pull."""

    version: str
    notes: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "notes": self.notes,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        """Create a HistoryEntry from its JSON form.

        Raises:
            SyncStateError: If the timestamp cannot be parsed
        """
        if not isinstance(data, dict):
            raise SyncStateError(f"History entry is not an object: {data!r}")
        timestamp = parse_history_timestamp(data.get("timestamp"))
        if timestamp is None:
            raise SyncStateError(
                f"History entry has an invalid timestamp: {data.get('timestamp')!r}"
            )
        return cls(
            version=str(data.get("version", "")),
            notes=str(data.get("notes", "")),
            timestamp=timestamp,
        )

    @classmethod
    def now(cls, version: str, notes: str = "") -> "HistoryEntry":
        return cls(version=version, notes=notes, timestamp=datetime.now())


class HistoryLedger:
    """A JSON file holding history entries in insertion order.

    Access is read-whole-file, modify, write-whole-file; callers serialize
    access through a single owner.
    """

    def __init__(self, path: Path):
        self.path = path

    def load_all(self) -> list[HistoryEntry]:
        """Load all entries, oldest first.

        Raises:
            SyncStateError: If the ledger is corrupt
        """
        data: Optional[dict] = read_json(self.path)
        if data is None:
            return []
        if not isinstance(data, dict) or not isinstance(data.get("entries"), list):
            raise SyncStateError(f"Unexpected history layout in {self.path}")
        return [HistoryEntry.from_dict(item) for item in data["entries"]]

    def append(self, entry: HistoryEntry) -> None:
        """Append an entry and persist the ledger.

        Raises:
            SyncStateError: If the ledger cannot be read or written
        """
        entries = self.load_all()
        entries.append(entry)
        try:
            write_json_atomic(
                self.path, {"entries": [item.to_dict() for item in entries]}
            )
        except OSError as e:
            raise SyncStateError(f"Failed to write history {self.path}: {e}") from e
        logger.debug(f"Appended history entry {entry.version!r} to {self.path}")
