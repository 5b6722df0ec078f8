"""
SyncOrchestrator - drives sync passes between the local log and the remote table

One pass: validate -> fetch -> merge -> push -> split -> report.

The merge result is only handed back (and committed to the local log) when
every step succeeded; any failure leaves the caller's entries untouched.

Usage:
    from pathlib import Path
    from donelog.config import load_config
    from donelog.local_store import LocalLogStore
    from donelog.sync import SyncOrchestrator

    base_path = Path("~/.donelog").expanduser()
    orchestrator = SyncOrchestrator(load_config(base_path), LocalLogStore(base_path))

    result = await orchestrator.sync_local()
    if not result.success:
        print(f"Sync failed: {result.message}")
"""

import asyncio
import logging
from datetime import datetime
from threading import Lock
from typing import Optional, Dict, Any, List, Callable

from ..config import SyncConfig
from ..models import LogEntry
from ..remote_store import RemoteStore, SupabaseStore, SyncError
from .merge import MergeResult, merge_entries
from .protocol import SyncResult, SyncState

logger = logging.getLogger(__name__)


async def run_sync_pass(
    store: RemoteStore,
    local_active: List[LogEntry],
    local_trash: List[LogEntry],
    now: Optional[str] = None,
) -> MergeResult:
    """
    Execute one pass against a store and return the reconciled state.

    Raises:
        SyncError: If probing, fetching or upserting fails
        ValueError: If local state is inconsistent or a timestamp is invalid
    """
    await store.probe()
    remote = await store.fetch_all()
    logger.debug(f"Fetched {len(remote)} remote rows")

    result = merge_entries(local_active, local_trash, remote, now=now)

    await store.upsert_many(result.entries)
    return result


def _success(result: MergeResult) -> SyncResult:
    return SyncResult(
        success=True,
        new_active=result.active,
        new_trash=result.trash,
        stats=result.stats(),
    )


async def sync_with_cloud(
    local_active: List[LogEntry],
    local_trash: List[LogEntry],
    store: RemoteStore,
    now: Optional[str] = None,
) -> SyncResult:
    """
    Stateless sync entry point.

    Runs one pass against an explicit store without a state machine or a
    timeout. Failures are returned, not raised.
    """
    try:
        result = await run_sync_pass(store, local_active, local_trash, now=now)
    except SyncError as e:
        logger.error(f"Sync failed: {e}")
        return SyncResult.failure(str(e), retryable=e.retryable)
    except ValueError as e:
        logger.error(f"Sync failed: {e}")
        return SyncResult.failure(str(e))

    return _success(result)


class SyncOrchestrator:
    """
    Runs sync passes and owns the sync state machine.

    State machine:
        IDLE/FAILED -> SYNCING: atomic, under a lock; a pass requested while
                                another is SYNCING is rejected
        SYNCING -> IDLE:        success (failure indicator cleared)
        SYNCING -> FAILED:      any error or timeout
        SYNCING -> previous:    cancel (a FAILED indicator survives)
        FAILED -> IDLE:         reconfigure()

    The remote store handle is cached and reused while (endpoint,
    credential) stay the same.

    cancel() and reconfigure() must be called from the event loop running
    the pass.
    """

    def __init__(
        self,
        config: SyncConfig,
        local_log: Optional[Any] = None,
        store_factory: Optional[Callable[[SyncConfig], RemoteStore]] = None,
    ):
        """
        Initialize SyncOrchestrator.

        Args:
            config: Remote sync settings
            local_log: Optional local entry source with load() -> (active, trash)
                       and replace(active, trash); required by sync_local()
            store_factory: Builds a RemoteStore from config
                           (default: SupabaseStore.from_config)
        """
        self.config = config
        self.local_log = local_log
        self._store_factory = store_factory or SupabaseStore.from_config

        self._store: Optional[RemoteStore] = None
        self._store_key: Optional[tuple] = None

        self._state = SyncState.IDLE
        self._lock = Lock()
        self._current_task: Optional[asyncio.Future] = None
        self._cancel_requested = False
        self._resume_state = SyncState.IDLE

        self._last_sync: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._sync_count = 0
        self._error_count = 0

    @property
    def state(self) -> SyncState:
        with self._lock:
            return self._state

    @property
    def last_error(self) -> Optional[str]:
        with self._lock:
            return self._last_error

    def _begin(self) -> bool:
        """Atomically move to SYNCING; False if a pass is already running"""
        with self._lock:
            if self._state == SyncState.SYNCING:
                return False
            old_state = self._state
            self._resume_state = old_state
            self._state = SyncState.SYNCING
            self._cancel_requested = False
        logger.info(f"Sync state: {old_state.value} -> {SyncState.SYNCING.value}")
        return True

    def _finish(self, state: SyncState, error: Optional[str] = None) -> None:
        with self._lock:
            self._state = state
            if state == SyncState.FAILED:
                self._error_count += 1
                self._last_error = error
            else:
                self._sync_count += 1
                self._last_sync = datetime.now()
                self._last_error = None
        logger.info(f"Sync state: {SyncState.SYNCING.value} -> {state.value}")

    def _abandon(self) -> None:
        """Return to the state the cancelled pass started from"""
        with self._lock:
            state = self._resume_state
            self._state = state
        logger.info(f"Sync state: {SyncState.SYNCING.value} -> {state.value} (cancelled)")

    async def _get_store(self) -> RemoteStore:
        """Return the cached store, rebuilding it if the connection changed"""
        key = self.config.connection_key
        if self._store is not None and self._store_key == key:
            return self._store

        stale = self._store
        self._store = self._store_factory(self.config)
        self._store_key = key
        if stale is not None:
            await stale.close()
        logger.debug(f"Created remote store for {self.config.endpoint}")
        return self._store

    async def sync(
        self,
        local_active: List[LogEntry],
        local_trash: List[LogEntry],
    ) -> SyncResult:
        """
        Run one sync pass over the given local snapshot.

        The inputs are never modified. On success the result carries the new
        active and trash lists; on failure only a message.

        Args:
            local_active: Current local active entries
            local_trash: Current local trash entries

        Returns:
            SyncResult
        """
        if not self.config.is_configured:
            return SyncResult.failure("Sync is not configured: endpoint and credential are required")

        if not self._begin():
            logger.warning("Sync pass rejected: another pass is in progress")
            return SyncResult.failure("A sync pass is already in progress", retryable=True)

        logger.info(
            f"Sync started: {len(local_active)} active, {len(local_trash)} trash, "
            f"endpoint={self.config.endpoint}"
        )

        try:
            store = await self._get_store()
            task = asyncio.ensure_future(
                asyncio.wait_for(
                    run_sync_pass(store, local_active, local_trash),
                    timeout=self.config.timeout,
                )
            )
            self._current_task = task
            if self._cancel_requested:
                task.cancel()
            try:
                result = await task
            finally:
                self._current_task = None

        except asyncio.CancelledError:
            self._abandon()
            if not self._cancel_requested:
                raise
            logger.info("Sync cancelled")
            return SyncResult.failure("Sync cancelled")

        except asyncio.TimeoutError:
            message = f"Sync timed out after {self.config.timeout:g}s"
            logger.error(message)
            self._finish(SyncState.FAILED, message)
            return SyncResult.failure(message, retryable=True)

        except SyncError as e:
            logger.error(f"Sync failed: {e}")
            self._finish(SyncState.FAILED, str(e))
            return SyncResult.failure(str(e), retryable=e.retryable)

        except ValueError as e:
            logger.error(f"Sync failed: {e}")
            self._finish(SyncState.FAILED, str(e))
            return SyncResult.failure(str(e))

        except Exception as e:
            logger.error(f"Sync failed unexpectedly: {e}", exc_info=True)
            self._finish(SyncState.FAILED, str(e))
            return SyncResult.failure(f"Unexpected error: {e}")

        self._finish(SyncState.IDLE)
        logger.info(f"Sync finished: {result.stats()}")
        return _success(result)

    async def sync_local(self) -> SyncResult:
        """
        Sync the attached local log and commit the result on success.

        Raises:
            ValueError: If no local log is attached
        """
        if self.local_log is None:
            raise ValueError("No local log attached to this orchestrator")

        try:
            local_active, local_trash = self.local_log.load()
        except (OSError, ValueError) as e:
            logger.error(f"Cannot read local log: {e}")
            return SyncResult.failure(f"Cannot read local log: {e}")

        result = await self.sync(local_active, local_trash)
        if result.success:
            try:
                self.local_log.replace(result.new_active, result.new_trash)
            except OSError as e:
                logger.error(f"Cannot write local log: {e}")
                return SyncResult.failure(f"Cannot write local log: {e}", retryable=True)
        return result

    def cancel(self) -> bool:
        """
        Abandon the in-flight pass, if any.

        Returns:
            True if a pass was running and has been asked to stop
        """
        with self._lock:
            if self._state != SyncState.SYNCING:
                return False
            self._cancel_requested = True

        task = self._current_task
        if task is not None and not task.done():
            task.cancel()
        return True

    async def reconfigure(self, config: SyncConfig) -> None:
        """
        Apply new settings.

        Cancels any in-flight pass, drops the cached store and clears the
        failure indicator.
        """
        self.cancel()

        stale = self._store
        self._store = None
        self._store_key = None
        self.config = config

        with self._lock:
            if self._state == SyncState.FAILED:
                self._state = SyncState.IDLE
            self._resume_state = SyncState.IDLE
            self._last_error = None

        if stale is not None:
            await stale.close()
        logger.info(f"Sync reconfigured: endpoint={config.endpoint}")

    async def close(self) -> None:
        """Cancel any pass and release the cached store"""
        self.cancel()
        if self._store is not None:
            await self._store.close()
            self._store = None
            self._store_key = None

    def get_status(self) -> Dict[str, Any]:
        """
        Get sync status information.

        Returns:
            Dictionary with state, last_sync, last_error, sync_count,
            error_count, configured, auto_sync and interval_minutes
        """
        with self._lock:
            return {
                "state": self._state.value,
                "last_sync": self._last_sync.isoformat() if self._last_sync else None,
                "last_error": self._last_error,
                "sync_count": self._sync_count,
                "error_count": self._error_count,
                "configured": self.config.is_configured,
                "auto_sync": self.config.auto_sync,
                "interval_minutes": self.config.interval_minutes,
            }
