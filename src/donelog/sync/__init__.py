"""
donelog Sync Module - Cloud synchronization of the done log

Reconciles a device's local log (active entries plus soft-deleted trash)
against the remote "logs" table.

Key Components:
    - merge_entries: Pure reconcile (last-writer-wins + content dedup)
    - SyncOrchestrator: Runs passes, owns the IDLE/SYNCING/FAILED state machine
    - AutoSyncScheduler: Interval-driven passes
    - test_connection: Credential/endpoint check

Usage:
    from donelog.sync import SyncOrchestrator

    orchestrator = SyncOrchestrator(config, local_log)
    result = await orchestrator.sync_local()
"""

from .protocol import SyncState, SyncResult
from .merge import MergeResult, LocalStateError, merge_entries
from .orchestrator import SyncOrchestrator, sync_with_cloud
from .scheduler import AutoSyncScheduler
from .connection import test_connection

__all__ = [
    "SyncState",
    "SyncResult",
    "MergeResult",
    "LocalStateError",
    "merge_entries",
    "SyncOrchestrator",
    "sync_with_cloud",
    "AutoSyncScheduler",
    "test_connection",
]
