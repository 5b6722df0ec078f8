"""
Local log persistence: entries.json / trash.json / sync_status.json

The local log is two JSON arrays of rows, one for active entries and one
for the trash. Both files are replaced together after a successful sync.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple

from .models import LogEntry, utc_now

ENTRIES_FILENAME = "entries.json"
TRASH_FILENAME = "trash.json"
STATUS_FILENAME = "sync_status.json"


class LocalLogStore:
    """
    Local entry source consumed by the SyncOrchestrator

    Pattern: load() a snapshot, hand it to the sync pass, replace() both
    files with the reconciled lists on success.
    """

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)
        self.entries_path = self.base_path / ENTRIES_FILENAME
        self.trash_path = self.base_path / TRASH_FILENAME
        self.status_path = self.base_path / STATUS_FILENAME

    def initialize(self) -> None:
        """Create empty entry files if missing"""
        self.base_path.mkdir(parents=True, exist_ok=True)
        for path in (self.entries_path, self.trash_path):
            if not path.exists():
                path.write_text("[]")

    def _read_rows(self, path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        try:
            rows = json.loads(path.read_text() or "[]")
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupt local log file {path}: {e}") from e
        if not isinstance(rows, list):
            raise ValueError(f"Corrupt local log file {path}: expected a list")
        return rows

    def load(self) -> Tuple[List[LogEntry], List[LogEntry]]:
        """
        Load (active, trash).

        Entries written before modifiedAt existed get modifiedAt=timestamp;
        the deletion flag follows the file an entry was read from.
        """
        active = []
        for row in self._read_rows(self.entries_path):
            entry = LogEntry.from_dict(row)
            entry.modified_at = entry.modified_at or entry.timestamp
            entry.is_deleted = False
            active.append(entry)

        trash = []
        for row in self._read_rows(self.trash_path):
            entry = LogEntry.from_dict(row)
            entry.modified_at = entry.modified_at or entry.timestamp
            entry.is_deleted = True
            trash.append(entry)

        return active, trash

    def replace(self, active: List[LogEntry], trash: List[LogEntry]) -> None:
        """
        Replace both files.

        Both payloads are written to temp files first, then moved into place.
        """
        self.base_path.mkdir(parents=True, exist_ok=True)
        staged = []
        try:
            for path, entries in ((self.entries_path, active), (self.trash_path, trash)):
                fd, tmp_name = tempfile.mkstemp(dir=self.base_path, prefix=f".{path.name}.")
                with os.fdopen(fd, "w") as f:
                    json.dump([e.to_dict() for e in entries], f, indent=2)
                staged.append((tmp_name, path))
        except OSError:
            for tmp_name, _ in staged:
                Path(tmp_name).unlink(missing_ok=True)
            raise

        for tmp_name, path in staged:
            os.replace(tmp_name, path)

    def _find(self, entries: List[LogEntry], entry_id: str) -> Optional[LogEntry]:
        for entry in entries:
            if entry.id == entry_id:
                return entry
        return None

    def soft_delete(self, entry_id: str, now: Optional[str] = None) -> LogEntry:
        """
        Move an active entry to the front of the trash.

        Raises:
            KeyError: If no active entry has this id
        """
        active, trash = self.load()
        entry = self._find(active, entry_id)
        if entry is None:
            raise KeyError(f"No active entry with id {entry_id}")

        deleted = entry.mark_deleted(now or utc_now())
        active = [e for e in active if e.id != entry_id]
        self.replace(active, [deleted] + trash)
        return deleted

    def restore(self, entry_id: str, now: Optional[str] = None) -> LogEntry:
        """
        Move a trashed entry back to the active list.

        This is the only operation that clears is_deleted.

        Raises:
            KeyError: If no trashed entry has this id
        """
        active, trash = self.load()
        entry = self._find(trash, entry_id)
        if entry is None:
            raise KeyError(f"No trashed entry with id {entry_id}")

        restored = entry.mark_restored(now or utc_now())
        trash = [e for e in trash if e.id != entry_id]
        self.replace(active + [restored], trash)
        return restored

    def write_status(self, status: Dict[str, Any]) -> None:
        """Persist the outcome of the last sync pass"""
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.status_path.write_text(json.dumps(status, indent=2))

    def read_status(self) -> Optional[Dict[str, Any]]:
        """Outcome of the last sync pass, or None"""
        if not self.status_path.exists():
            return None
        try:
            return json.loads(self.status_path.read_text())
        except json.JSONDecodeError:
            return None

    def clear_failure(self) -> None:
        """Drop a persisted failure indicator (after reconfiguration)"""
        status = self.read_status()
        if status and not status.get("success", True):
            self.status_path.unlink(missing_ok=True)
