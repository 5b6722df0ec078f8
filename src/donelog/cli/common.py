"""Shared utilities for donelog CLI commands."""
import os
import sys
from pathlib import Path
from typing import Optional

import click

from ..config import CONFIG_FILENAME
from ..local_store import LocalLogStore
from ..sync import SyncResult

# Default paths
DEFAULT_BASE_PATH = Path.home() / ".donelog"

# Verbosity levels
VERBOSITY_QUIET = 0
VERBOSITY_NORMAL = 1
VERBOSITY_VERBOSE = 2


def get_base_path(ctx_data_dir: Optional[Path] = None) -> Path:
    """Resolve the data directory: --data-dir, then DONELOG_BASE_PATH, then ~/.donelog."""
    if ctx_data_dir:
        return Path(ctx_data_dir)
    env_path = os.getenv("DONELOG_BASE_PATH")
    if env_path:
        return Path(env_path)
    return DEFAULT_BASE_PATH


def require_initialized(base_path: Path) -> None:
    """Exit with an error if 'donelog init' has not been run."""
    if not (base_path / CONFIG_FILENAME).exists():
        click.echo("Error: donelog not initialized. Run 'donelog init' first.", err=True)
        sys.exit(1)


def echo_verbose(message: str, verbosity: int) -> None:
    """Print a message only in verbose mode."""
    if verbosity >= VERBOSITY_VERBOSE:
        click.echo(message)


def echo_normal(message: str, verbosity: int) -> None:
    """Print a message in normal and verbose modes."""
    if verbosity >= VERBOSITY_NORMAL:
        click.echo(message)


def echo_quiet(message: str) -> None:
    """Print a message that is shown even with --quiet."""
    click.echo(message)


def record_result(local_log: LocalLogStore, result: SyncResult) -> None:
    """Persist the pass outcome for 'sync status'."""
    status = {
        "success": result.success,
        "finished_at": result.finished_at.isoformat(),
    }
    if result.success:
        status["stats"] = result.stats or {}
    else:
        status["message"] = result.message
        status["retryable"] = result.retryable
    local_log.write_status(status)


def report_result(result: SyncResult, verbosity: int) -> None:
    """Print a pass outcome: errors to stderr, counters by verbosity."""
    if not result.success:
        click.echo(f"Error: Sync failed: {result.message}", err=True)
        return

    stats = result.stats or {}
    echo_normal(click.style("✓ Sync complete", fg="green"), verbosity)
    echo_normal(f"  Active: {stats.get('active', 0)}  Trash: {stats.get('trash', 0)}", verbosity)
    echo_verbose(f"  New from this device: {stats.get('added_from_local', 0)}", verbosity)
    echo_verbose(f"  Local wins: {stats.get('local_wins', 0)}", verbosity)
    echo_verbose(f"  Remote wins: {stats.get('remote_wins', 0)}", verbosity)
    echo_verbose(f"  Duplicates resolved: {stats.get('duplicates_resolved', 0)}", verbosity)
