"""
Tests for LocalLogStore

Covers loading (with migration of old rows), atomic replacement,
soft delete / restore, and the persisted sync status.
"""

import json

import pytest

from donelog.local_store import LocalLogStore
from sync_fakes import entry, T0, T1, T2

NOW = "2024-06-01T00:00:00.000Z"


class TestLoad:
    """Reading entries.json and trash.json."""

    def test_initialize_creates_empty_files(self, tmp_path):
        store = LocalLogStore(tmp_path / "data")
        store.initialize()

        assert store.load() == ([], [])
        assert json.loads(store.entries_path.read_text()) == []

    def test_missing_files_load_empty(self, tmp_path):
        assert LocalLogStore(tmp_path / "nothing").load() == ([], [])

    def test_old_rows_get_modified_at(self, local_log):
        local_log.entries_path.write_text(json.dumps([
            {"id": "a", "content": "old row", "timestamp": T0},
        ]))

        active, _ = local_log.load()

        assert active[0].modified_at == T0
        assert active[0].is_deleted is False

    def test_flag_follows_file(self, local_log):
        local_log.entries_path.write_text(json.dumps([
            {"id": "a", "content": "x", "timestamp": T0, "isDeleted": True},
        ]))
        local_log.trash_path.write_text(json.dumps([
            {"id": "b", "content": "y", "timestamp": T0, "modifiedAt": T1},
        ]))

        active, trash = local_log.load()

        assert active[0].is_deleted is False
        assert trash[0].is_deleted is True

    def test_corrupt_file_raises_value_error(self, local_log):
        local_log.trash_path.write_text("[{")
        with pytest.raises(ValueError, match="Corrupt"):
            local_log.load()

    def test_non_list_file_raises_value_error(self, local_log):
        local_log.entries_path.write_text('{"id": "a"}')
        with pytest.raises(ValueError, match="expected a list"):
            local_log.load()


class TestReplace:
    """Writing both files."""

    def test_replace_roundtrip(self, local_log):
        active = [entry("a", "x", T0, T1)]
        trash = [entry("b", "y", T0, T2, is_deleted=True)]

        local_log.replace(active, trash)

        assert local_log.load() == (active, trash)
        assert json.loads(local_log.trash_path.read_text())[0]["isDeleted"] is True

    def test_replace_leaves_no_temp_files(self, local_log):
        local_log.replace([entry("a", "x", T0, T0)], [])

        names = sorted(p.name for p in local_log.base_path.iterdir())
        assert names == ["entries.json", "trash.json"]


class TestLifecycle:
    """Soft delete and restore."""

    def test_soft_delete_moves_to_front_of_trash(self, local_log):
        local_log.replace(
            [entry("a", "x", T0, T0), entry("b", "y", T0, T0)],
            [entry("old", "z", T0, T1, is_deleted=True)],
        )

        deleted = local_log.soft_delete("a", now=NOW)
        active, trash = local_log.load()

        assert deleted.is_deleted is True
        assert deleted.modified_at == NOW
        assert [e.id for e in active] == ["b"]
        assert [e.id for e in trash] == ["a", "old"]

    def test_restore_clears_flag(self, local_log):
        local_log.replace([], [entry("a", "x", T0, T1, is_deleted=True)])

        restored = local_log.restore("a", now=NOW)
        active, trash = local_log.load()

        assert restored.is_deleted is False
        assert [e.id for e in active] == ["a"]
        assert active[0].modified_at == NOW
        assert trash == []

    def test_unknown_ids_raise_key_error(self, local_log):
        with pytest.raises(KeyError):
            local_log.soft_delete("missing")
        with pytest.raises(KeyError):
            local_log.restore("missing")


class TestStatus:
    """Persisted outcome of the last pass."""

    def test_status_roundtrip(self, local_log):
        assert local_log.read_status() is None

        local_log.write_status({"success": True, "finished_at": NOW})

        assert local_log.read_status()["success"] is True

    def test_clear_failure_removes_failed_status(self, local_log):
        local_log.write_status({"success": False, "message": "down"})
        local_log.clear_failure()

        assert local_log.read_status() is None

    def test_clear_failure_keeps_success(self, local_log):
        local_log.write_status({"success": True})
        local_log.clear_failure()

        assert local_log.read_status() == {"success": True}
