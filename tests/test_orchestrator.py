"""
Tests for SyncOrchestrator and sync_with_cloud

Covers:
- Full pass ordering (probe -> fetch -> upsert) and result shape
- Atomic failure: fetch/upsert errors leave local state untouched
- State machine: IDLE/SYNCING/FAILED, rejection of overlapping passes,
  failure indicator persistence, reconfigure, cancel, timeout
- Remote store handle caching keyed by (endpoint, credential)
- Unexpected exceptions and local write failures
- Committing results to the local log
"""

import asyncio
from dataclasses import replace

import pytest

from donelog.config import SyncConfig
from donelog.remote_store import RemoteConnectionError, RemoteReadError, RemoteWriteError
from donelog.sync.orchestrator import SyncOrchestrator, sync_with_cloud
from donelog.sync.protocol import SyncState
from sync_fakes import FakeRemoteStore, entry, T0, T1, T2


def orchestrator_for(store, config, local_log=None):
    """Orchestrator whose factory always hands out the given store."""
    created = []

    def factory(cfg):
        created.append(cfg)
        return store

    orch = SyncOrchestrator(config, local_log=local_log, store_factory=factory)
    orch.created = created
    return orch


class TestSyncWithCloud:
    """Stateless entry point."""

    @pytest.mark.asyncio
    async def test_success_pushes_full_map(self, remote):
        remote.rows["r"] = entry("r", "remote", T1)
        result = await sync_with_cloud([entry("a", "buy milk", T0, T0)], [], remote)

        assert result.success is True
        assert sorted(e.id for e in result.new_active) == ["a", "r"]
        assert remote.calls == ["probe", "fetch_all", "upsert_many"]
        assert sorted(e.id for e in remote.upserted[0]) == ["a", "r"]

    @pytest.mark.asyncio
    async def test_fetch_failure_returns_message(self, remote):
        remote.fetch_error = RemoteReadError("fetch exploded")
        active = [entry("a")]
        result = await sync_with_cloud(active, [], remote)

        assert result.success is False
        assert result.message == "fetch exploded"
        assert result.new_active == []
        assert "upsert_many" not in remote.calls

    @pytest.mark.asyncio
    async def test_local_state_error_is_reported(self, remote):
        result = await sync_with_cloud([entry("a")], [entry("a", is_deleted=True)], remote)

        assert result.success is False
        assert "more than once" in result.message

    @pytest.mark.asyncio
    async def test_to_dict_shapes(self, remote):
        ok = await sync_with_cloud([entry("a")], [], remote)
        assert set(ok.to_dict()) == {"success", "newActive", "newTrash", "stats"}
        assert ok.to_dict()["newActive"][0]["id"] == "a"

        remote.probe_error = RemoteConnectionError("offline", retryable=True)
        failed = await sync_with_cloud([entry("a")], [], remote)
        assert failed.to_dict() == {"success": False, "message": "offline", "retryable": True}


class TestAtomicFailure:
    """Failures never change the caller's entries."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stage", ["probe", "fetch", "upsert"])
    async def test_failure_leaves_local_log_untouched(self, stage, sync_config, local_log, remote):
        local_log.replace([entry("a", "x", T0, T1), entry("b", "x", T0, T1)], [])
        before_entries = local_log.entries_path.read_bytes()
        before_trash = local_log.trash_path.read_bytes()

        error = {
            "probe": RemoteConnectionError("unreachable"),
            "fetch": RemoteReadError("read failed"),
            "upsert": RemoteWriteError("write failed"),
        }[stage]
        setattr(remote, f"{stage}_error", error)

        orch = orchestrator_for(remote, sync_config, local_log)
        result = await orch.sync_local()

        assert result.success is False
        assert result.message == str(error)
        assert local_log.entries_path.read_bytes() == before_entries
        assert local_log.trash_path.read_bytes() == before_trash
        assert orch.state == SyncState.FAILED

    @pytest.mark.asyncio
    async def test_inputs_unchanged_on_upsert_failure(self, sync_config, remote):
        remote.upsert_error = RemoteWriteError("nope")
        active = [entry("a", "c", T0), entry("b", "c", T0)]
        snapshot = [replace(e) for e in active]

        orch = orchestrator_for(remote, sync_config)
        result = await orch.sync(active, [])

        assert result.success is False
        assert active == snapshot
        assert remote.rows == {}


class TestStateMachine:
    """IDLE/SYNCING/FAILED transitions."""

    @pytest.mark.asyncio
    async def test_success_returns_to_idle(self, sync_config, remote):
        orch = orchestrator_for(remote, sync_config)
        result = await orch.sync([entry("a")], [])

        assert result.success is True
        assert orch.state == SyncState.IDLE
        status = orch.get_status()
        assert status["sync_count"] == 1
        assert status["last_sync"] is not None
        assert status["last_error"] is None

    @pytest.mark.asyncio
    async def test_unconfigured_is_rejected_without_state_change(self, remote):
        orch = orchestrator_for(remote, SyncConfig())
        result = await orch.sync([], [])

        assert result.success is False
        assert "not configured" in result.message
        assert orch.state == SyncState.IDLE
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_failure_indicator_persists_until_success(self, sync_config, remote):
        orch = orchestrator_for(remote, sync_config)

        remote.fetch_error = RemoteReadError("down")
        await orch.sync([], [])
        assert orch.state == SyncState.FAILED
        assert orch.last_error == "down"

        # A local state error is also a failure
        await orch.sync([entry("a")], [entry("a", is_deleted=True)])
        assert orch.state == SyncState.FAILED

        remote.fetch_error = None
        result = await orch.sync([], [])
        assert result.success is True
        assert orch.state == SyncState.IDLE
        assert orch.last_error is None
        assert orch.get_status()["error_count"] == 2

    @pytest.mark.asyncio
    async def test_overlapping_pass_is_rejected(self, sync_config, remote):
        remote.gate = asyncio.Event()
        orch = orchestrator_for(remote, sync_config)

        first = asyncio.ensure_future(orch.sync([entry("a", "one", T0)], []))
        await asyncio.sleep(0)
        while "fetch_all" not in remote.calls:
            await asyncio.sleep(0)
        assert orch.state == SyncState.SYNCING

        second = await orch.sync([entry("b", "two", T0)], [])
        assert second.success is False
        assert "already in progress" in second.message

        remote.gate.set()
        first_result = await first

        assert first_result.success is True
        assert sorted(remote.rows) == ["a"]
        assert orch.state == SyncState.IDLE

    @pytest.mark.asyncio
    async def test_timeout_is_retryable_failure(self, remote):
        remote.fetch_delay = 1.0
        config = SyncConfig(endpoint="https://x.supabase.co", credential="k", timeout=0.05)
        orch = orchestrator_for(remote, config)

        result = await orch.sync([entry("a")], [])

        assert result.success is False
        assert result.retryable is True
        assert "timed out" in result.message
        assert orch.state == SyncState.FAILED
        assert remote.upserted == []

    @pytest.mark.asyncio
    async def test_cancel_abandons_pass(self, sync_config, remote):
        remote.gate = asyncio.Event()
        orch = orchestrator_for(remote, sync_config)

        task = asyncio.ensure_future(orch.sync([entry("a")], []))
        while "fetch_all" not in remote.calls:
            await asyncio.sleep(0)

        assert orch.cancel() is True
        result = await task

        assert result.success is False
        assert result.message == "Sync cancelled"
        assert orch.state == SyncState.IDLE
        assert remote.upserted == []

    @pytest.mark.asyncio
    async def test_cancel_when_idle(self, sync_config, remote):
        orch = orchestrator_for(remote, sync_config)
        assert orch.cancel() is False

    @pytest.mark.asyncio
    async def test_cancel_keeps_failure_indicator(self, sync_config, remote):
        orch = orchestrator_for(remote, sync_config)
        remote.fetch_error = RemoteReadError("down")
        await orch.sync([], [])
        assert orch.state == SyncState.FAILED

        remote.fetch_error = None
        remote.gate = asyncio.Event()
        task = asyncio.ensure_future(orch.sync([entry("a")], []))
        while remote.calls.count("fetch_all") < 2:
            await asyncio.sleep(0)
        assert orch.state == SyncState.SYNCING

        assert orch.cancel() is True
        result = await task

        assert result.message == "Sync cancelled"
        assert orch.state == SyncState.FAILED
        assert orch.last_error == "down"
        assert orch.get_status()["error_count"] == 1


class TestUnexpectedErrors:
    """Errors outside the SyncError family still end the pass."""

    @pytest.mark.asyncio
    async def test_unexpected_exception_fails_pass(self, sync_config, remote):
        remote.fetch_error = RuntimeError("driver bug")
        orch = orchestrator_for(remote, sync_config)

        result = await orch.sync([entry("a")], [])

        assert result.success is False
        assert "driver bug" in result.message
        assert orch.state == SyncState.FAILED
        assert orch.last_error == "driver bug"

        remote.fetch_error = None
        second = await orch.sync([entry("a")], [])
        assert second.success is True
        assert orch.state == SyncState.IDLE

    @pytest.mark.asyncio
    async def test_invalid_endpoint_is_connection_failure(self):
        config = SyncConfig(endpoint="https://exa\tmple.com:99999", credential="k")
        orch = SyncOrchestrator(config)

        result = await orch.sync([entry("a")], [])
        await orch.close()

        assert result.success is False
        assert "Invalid endpoint" in result.message
        assert orch.state == SyncState.FAILED

    @pytest.mark.asyncio
    async def test_local_write_failure_is_reported(self, sync_config, local_log, remote, monkeypatch):
        local_log.replace([entry("a", "c", T0, T0)], [])
        before = local_log.entries_path.read_bytes()

        def fail_replace(active, trash):
            raise OSError("disk full")

        monkeypatch.setattr(local_log, "replace", fail_replace)
        orch = orchestrator_for(remote, sync_config, local_log)

        result = await orch.sync_local()

        assert result.success is False
        assert "Cannot write local log: disk full" in result.message
        assert local_log.entries_path.read_bytes() == before


class TestReconfigure:
    """Reconfiguration and store handle caching."""

    @pytest.mark.asyncio
    async def test_store_reused_while_connection_unchanged(self, sync_config, remote):
        orch = orchestrator_for(remote, sync_config)
        await orch.sync([], [])
        await orch.sync([], [])

        assert len(orch.created) == 1

    @pytest.mark.asyncio
    async def test_store_rebuilt_when_credential_changes(self, sync_config):
        stores = [FakeRemoteStore(), FakeRemoteStore()]
        orch = SyncOrchestrator(sync_config, store_factory=lambda cfg: stores.pop(0))

        await orch.sync([], [])
        first = orch._store
        orch.config = replace(sync_config, credential="rotated")
        await orch.sync([], [])

        assert orch._store is not first
        assert first.closed is True

    @pytest.mark.asyncio
    async def test_reconfigure_clears_failure(self, sync_config, remote):
        remote.fetch_error = RemoteReadError("down")
        orch = orchestrator_for(remote, sync_config)
        await orch.sync([], [])
        assert orch.state == SyncState.FAILED

        await orch.reconfigure(replace(sync_config, endpoint="https://other.supabase.co"))

        assert orch.state == SyncState.IDLE
        assert orch.last_error is None
        assert remote.closed is True
        assert orch.config.endpoint == "https://other.supabase.co"

    @pytest.mark.asyncio
    async def test_reconfigure_cancels_in_flight_pass(self, sync_config, remote):
        remote.gate = asyncio.Event()
        orch = orchestrator_for(remote, sync_config)

        task = asyncio.ensure_future(orch.sync([entry("a")], []))
        while "fetch_all" not in remote.calls:
            await asyncio.sleep(0)

        await orch.reconfigure(replace(sync_config, credential="new"))
        result = await task

        assert result.success is False
        assert result.message == "Sync cancelled"
        assert orch.state == SyncState.IDLE

    @pytest.mark.asyncio
    async def test_reconfigure_during_pass_clears_earlier_failure(self, sync_config, remote):
        orch = orchestrator_for(remote, sync_config)
        remote.fetch_error = RemoteReadError("down")
        await orch.sync([], [])

        remote.fetch_error = None
        remote.gate = asyncio.Event()
        task = asyncio.ensure_future(orch.sync([entry("a")], []))
        while remote.calls.count("fetch_all") < 2:
            await asyncio.sleep(0)

        await orch.reconfigure(replace(sync_config, credential="new"))
        result = await task

        assert result.message == "Sync cancelled"
        assert orch.state == SyncState.IDLE
        assert orch.last_error is None


class TestSyncLocal:
    """Committing results to the attached local log."""

    @pytest.mark.asyncio
    async def test_commits_merged_state(self, sync_config, local_log, remote):
        local_log.replace([entry("a", "c", T0, T1), entry("b", "c", T0, T1)], [])
        remote.rows["r"] = entry("r", "from other device", T2, T2)

        orch = orchestrator_for(remote, sync_config, local_log)
        result = await orch.sync_local()

        assert result.success is True
        active, trash = local_log.load()
        assert sorted(e.id for e in active) == ["a", "r"]
        assert [e.id for e in trash] == ["b"]
        assert remote.rows["b"].is_deleted is True

    @pytest.mark.asyncio
    async def test_requires_local_log(self, sync_config, remote):
        orch = orchestrator_for(remote, sync_config)
        with pytest.raises(ValueError):
            await orch.sync_local()

    @pytest.mark.asyncio
    async def test_corrupt_local_log_is_failure(self, sync_config, local_log, remote):
        local_log.entries_path.write_text("{not json")
        orch = orchestrator_for(remote, sync_config, local_log)

        result = await orch.sync_local()

        assert result.success is False
        assert "Cannot read local log" in result.message
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_two_devices_converge(self, sync_config, tmp_path):
        """Two replicas creating the same note offline end with one live copy."""
        from donelog.local_store import LocalLogStore

        shared = FakeRemoteStore()
        device_a = LocalLogStore(tmp_path / "a")
        device_b = LocalLogStore(tmp_path / "b")
        device_a.replace([entry("id-a", "standup notes", T0, T0)], [])
        device_b.replace([entry("id-b", "standup notes", T0, T0)], [])

        orch_a = orchestrator_for(shared, sync_config, device_a)
        orch_b = orchestrator_for(shared, sync_config, device_b)

        assert (await orch_a.sync_local()).success
        assert (await orch_b.sync_local()).success
        assert (await orch_a.sync_local()).success

        for device in (device_a, device_b):
            active, trash = device.load()
            assert [e.id for e in active] == ["id-a"]
            assert [e.id for e in trash] == ["id-b"]
