"""
Merge Engine - reconciles a local log against the remote table

Pure, synchronous computation over three snapshots (local active, local
trash, remote rows). No I/O, no shared state.

Identity merge: per-id last-writer-wins on modifiedAt (timestamp when
                modifiedAt is missing). The local copy wins exact ties.

Deduplication:  entries with different ids but the same signature
                (timestamp instant + trimmed content) are collapsed to one
                live entry. Survivor order is (not deleted first, smallest
                id); the rest are marked deleted with a fresh modifiedAt.

Split:          reconciled values are partitioned into active and trash;
                trash is ordered most recently modified first.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Iterable, Tuple
import logging

from ..models import LogEntry, utc_now

logger = logging.getLogger(__name__)


class LocalStateError(ValueError):
    """Local active/trash snapshots violate the partition preconditions"""
    pass


@dataclass
class MergeResult:
    """
    Reconciled state produced by merge_entries().

    Attributes:
        entries: Every reconciled entry, the payload for the bulk upsert
        active: Entries with is_deleted=False
        trash: Entries with is_deleted=True, most recently modified first
        added_from_local: Local ids the remote did not know about
        local_wins: Ids where the local copy replaced the remote one
        remote_wins: Ids where the remote copy was kept
        duplicates_resolved: Entries soft-deleted by deduplication
    """
    entries: List[LogEntry] = field(default_factory=list)
    active: List[LogEntry] = field(default_factory=list)
    trash: List[LogEntry] = field(default_factory=list)
    added_from_local: int = 0
    local_wins: int = 0
    remote_wins: int = 0
    duplicates_resolved: int = 0

    def stats(self) -> Dict[str, int]:
        return {
            "total": len(self.entries),
            "active": len(self.active),
            "trash": len(self.trash),
            "added_from_local": self.added_from_local,
            "local_wins": self.local_wins,
            "remote_wins": self.remote_wins,
            "duplicates_resolved": self.duplicates_resolved,
        }


def check_local_state(local_active: List[LogEntry], local_trash: List[LogEntry]) -> None:
    """
    Enforce that active and trash form a partition of distinct ids.

    Raises:
        LocalStateError: If an id occurs more than once, or an active entry
                         carries is_deleted=True
    """
    seen = set()
    for entry in list(local_active) + list(local_trash):
        if entry.id in seen:
            raise LocalStateError(f"Entry {entry.id} appears more than once in local state")
        seen.add(entry.id)

    for entry in local_active:
        if entry.is_deleted:
            raise LocalStateError(f"Active entry {entry.id} is marked deleted")


def merge_by_id(
    remote: Iterable[LogEntry],
    local: Iterable[LogEntry],
    result: Optional[MergeResult] = None,
) -> Dict[str, LogEntry]:
    """
    Step A: per-id last-writer-wins.

    Args:
        remote: Remote rows (seed the map)
        local: Local entries, active first then trash
        result: Optional MergeResult whose counters are updated

    Returns:
        Map of id -> winning entry, in insertion order
    """
    merged: Dict[str, LogEntry] = {}
    for entry in remote:
        merged[entry.id] = entry

    for entry in local:
        current = merged.get(entry.id)
        if current is None:
            merged[entry.id] = entry
            if result is not None:
                result.added_from_local += 1
            continue

        if entry.effective_modified() >= current.effective_modified():
            merged[entry.id] = entry
            if result is not None:
                result.local_wins += 1
            logger.debug(f"LWW: local copy of {entry.id} kept")
        else:
            if result is not None:
                result.remote_wins += 1
            logger.debug(f"LWW: remote copy of {entry.id} kept")

    return merged


def deduplicate(
    merged: Dict[str, LogEntry],
    now: Optional[str] = None,
) -> int:
    """
    Step B: collapse entries that share a signature.

    Mutates merged in place. Every loser is rewritten with
    is_deleted=True and modified_at=now, including losers that were
    already deleted.

    Args:
        merged: Map produced by merge_by_id()
        now: ISO-8601 stamp for rewritten losers (default: current time)

    Returns:
        Number of live entries soft-deleted
    """
    groups: Dict[str, List[LogEntry]] = {}
    for entry in merged.values():
        groups.setdefault(entry.signature(), []).append(entry)

    stamp = now or utc_now()
    resolved = 0

    for group in groups.values():
        if len(group) < 2:
            continue

        group.sort(key=lambda e: (e.is_deleted, e.id))
        winner = group[0]

        for loser in group[1:]:
            merged[loser.id] = loser.mark_deleted(stamp)
            if not loser.is_deleted:
                resolved += 1
                logger.info(f"Duplicate {loser.id} soft-deleted in favor of {winner.id}")

    return resolved


def split_entries(entries: List[LogEntry]) -> Tuple[List[LogEntry], List[LogEntry]]:
    """
    Step D: partition into (active, trash).

    Active keeps input order; trash is sorted by modifiedAt (timestamp
    fallback), most recent first.
    """
    active = [e for e in entries if not e.is_deleted]
    trash = [e for e in entries if e.is_deleted]
    trash.sort(key=lambda e: e.effective_modified(), reverse=True)
    return active, trash


def merge_entries(
    local_active: List[LogEntry],
    local_trash: List[LogEntry],
    remote: List[LogEntry],
    now: Optional[str] = None,
) -> MergeResult:
    """
    Compute the reconciled state of a local log and the remote table.

    The inputs are not modified.

    Args:
        local_active: Local entries that are not deleted
        local_trash: Local soft-deleted entries
        remote: Freshly fetched remote rows
        now: ISO-8601 stamp used for entries soft-deleted by deduplication

    Returns:
        MergeResult with the full reconciled list and its active/trash split

    Raises:
        LocalStateError: If local_active and local_trash overlap
        ValueError: If an entry carries an unparseable timestamp
    """
    check_local_state(local_active, local_trash)

    local = list(local_active) + [
        e if e.is_deleted else replace(e, is_deleted=True) for e in local_trash
    ]

    result = MergeResult()
    merged = merge_by_id(remote, local, result)
    result.duplicates_resolved = deduplicate(merged, now)

    result.entries = list(merged.values())
    result.active, result.trash = split_entries(result.entries)

    logger.debug(f"Merge complete: {result.stats()}")
    return result
