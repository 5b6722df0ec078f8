"""
donelog - cloud sync for a personal done log

Reconciles a device's local log (active entries plus soft-deleted trash)
against a remote Supabase table with last-writer-wins and content-level
deduplication.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .models import LogEntry
from .config import SyncConfig, load_config, save_config
from .local_store import LocalLogStore
from .remote_store import (
    RemoteStore,
    SupabaseStore,
    SyncError,
    RemoteConnectionError,
    RemoteReadError,
    RemoteWriteError,
)
from .sync import (
    SyncState,
    SyncResult,
    MergeResult,
    LocalStateError,
    merge_entries,
    SyncOrchestrator,
    sync_with_cloud,
    AutoSyncScheduler,
)

__all__ = [
    "LogEntry",
    "SyncConfig",
    "load_config",
    "save_config",
    "LocalLogStore",
    "RemoteStore",
    "SupabaseStore",
    "SyncError",
    "RemoteConnectionError",
    "RemoteReadError",
    "RemoteWriteError",
    "SyncState",
    "SyncResult",
    "MergeResult",
    "LocalStateError",
    "merge_entries",
    "SyncOrchestrator",
    "sync_with_cloud",
    "AutoSyncScheduler",
]
