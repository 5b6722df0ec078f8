"""Pytest fixtures for donelog sync tests"""
import sys
from pathlib import Path

import pytest

# Ensure donelog is importable without installation
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from sync_fakes import FakeRemoteStore


@pytest.fixture
def remote():
    """Empty fake remote store."""
    return FakeRemoteStore()


@pytest.fixture
def sync_config():
    """Configured SyncConfig pointing at a fake endpoint."""
    from donelog.config import SyncConfig
    return SyncConfig(endpoint="https://example.supabase.co", credential="test-key", timeout=5.0)


@pytest.fixture
def local_log(tmp_path):
    """Initialized LocalLogStore in a temp dir."""
    from donelog.local_store import LocalLogStore
    store = LocalLogStore(tmp_path / "donelog")
    store.initialize()
    return store
