"""Cloud sync commands for donelog CLI."""
import asyncio
import signal
import sys
import click

# Local imports
from .common import (
    get_base_path, require_initialized, echo_verbose, echo_normal, echo_quiet,
    record_result, report_result,
)
from ..config import load_config
from ..local_store import LocalLogStore
from ..sync import AutoSyncScheduler, SyncOrchestrator, SyncResult, connection

SCHEMA_SQL = """create table logs (
  id text primary key,
  content text,
  timestamp text,
  "modifiedAt" text,
  "isDeleted" boolean default false
);"""


@click.group()
@click.pass_context
def sync_group(ctx):
    """Cloud synchronization commands.

    Reconcile the local log with the remote 'logs' table.
    """
    pass


@sync_group.command('run')
@click.pass_context
def sync_run(ctx):
    """Run one sync pass now."""
    verbosity = ctx.obj.get('verbosity', 1)
    base_path = get_base_path(ctx.obj.get('data_dir'))
    require_initialized(base_path)

    config = load_config(base_path)
    if not config.is_configured:
        click.echo("Error: Cloud sync not configured.", err=True)
        click.echo("Run 'donelog config connect --endpoint URL --credential KEY' first.", err=True)
        sys.exit(1)

    local_log = LocalLogStore(base_path)
    echo_normal(f"Syncing with {config.endpoint}...", verbosity)

    async def _run() -> SyncResult:
        orchestrator = SyncOrchestrator(config, local_log)
        try:
            return await orchestrator.sync_local()
        finally:
            await orchestrator.close()

    result = asyncio.run(_run())
    record_result(local_log, result)
    report_result(result, verbosity)

    if not result.success:
        sys.exit(1)


@sync_group.command('test')
@click.pass_context
def sync_test(ctx):
    """Check that the configured endpoint and credential work."""
    verbosity = ctx.obj.get('verbosity', 1)
    base_path = get_base_path(ctx.obj.get('data_dir'))
    require_initialized(base_path)

    config = load_config(base_path)
    if not config.is_configured:
        click.echo("Error: Cloud sync not configured.", err=True)
        sys.exit(1)

    ok = asyncio.run(connection.test_connection(
        config.endpoint, config.credential, table=config.table
    ))
    if ok:
        echo_normal(click.style(f"✓ Connected to {config.endpoint}", fg="green"), verbosity)
    else:
        click.echo(f"Error: Cannot connect to {config.endpoint}", err=True)
        sys.exit(1)


@sync_group.command('status')
@click.pass_context
def sync_status(ctx):
    """Show cloud sync configuration and the last pass outcome."""
    verbosity = ctx.obj.get('verbosity', 1)
    base_path = get_base_path(ctx.obj.get('data_dir'))
    require_initialized(base_path)

    config = load_config(base_path)
    local_log = LocalLogStore(base_path)

    echo_normal("=== Cloud Sync Status ===\n", verbosity)

    if not config.is_configured:
        echo_normal("Status: Disabled", verbosity)
        echo_normal("Cloud sync is not configured.", verbosity)
        echo_normal("\nTo enable, run:", verbosity)
        echo_normal("  donelog config connect --endpoint URL --credential KEY", verbosity)
        return

    echo_normal(f"Endpoint: {config.endpoint}", verbosity)
    echo_normal(f"Auto sync: {'on' if config.auto_sync else 'off'}", verbosity)
    if config.auto_sync:
        interval = f"every {config.interval_minutes} min" if config.interval_minutes else "startup only"
        echo_normal(f"Interval: {interval}", verbosity)
    echo_verbose(f"Table: {config.table}", verbosity)
    echo_verbose(f"Timeout: {config.timeout:g}s", verbosity)

    try:
        active, trash = local_log.load()
        echo_normal(f"Local: {len(active)} active, {len(trash)} in trash", verbosity)
    except ValueError as e:
        echo_quiet(click.style(f"Local log unreadable: {e}", fg="red"))

    status = local_log.read_status()
    if status is None:
        echo_normal("Last sync: never", verbosity)
    elif status.get("success"):
        echo_normal(f"Last sync: ok ({status.get('finished_at')})", verbosity)
    else:
        echo_quiet(click.style(
            f"Last sync: FAILED ({status.get('finished_at')}): {status.get('message')}", fg="red"
        ))


@sync_group.command('watch')
@click.option('--interval', type=int, default=None,
              help='Minutes between passes (default: sync.interval_minutes)')
@click.pass_context
def sync_watch(ctx, interval):
    """Run automatic sync until interrupted.

    One pass runs at startup; with an interval of 0 that is the only pass.
    """
    verbosity = ctx.obj.get('verbosity', 1)
    base_path = get_base_path(ctx.obj.get('data_dir'))
    require_initialized(base_path)

    config = load_config(base_path)
    if not config.is_configured:
        click.echo("Error: Cloud sync not configured.", err=True)
        sys.exit(1)
    if interval is None and not config.auto_sync:
        click.echo("Error: Auto sync is disabled. Set sync.auto_sync true or pass --interval.", err=True)
        sys.exit(1)
    if interval is not None and interval < 0:
        click.echo("Error: --interval must be >= 0", err=True)
        sys.exit(1)

    minutes = config.interval_minutes if interval is None else interval
    local_log = LocalLogStore(base_path)

    def on_result(result: SyncResult) -> None:
        record_result(local_log, result)
        report_result(result, verbosity)

    async def _watch() -> int:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, stop.set)
            loop.add_signal_handler(signal.SIGTERM, stop.set)
        except (NotImplementedError, RuntimeError):
            pass

        orchestrator = SyncOrchestrator(config, local_log)
        scheduler = AutoSyncScheduler(orchestrator, minutes, on_result=on_result)
        try:
            return await scheduler.run(stop)
        finally:
            await orchestrator.close()

    if minutes:
        echo_normal(f"Auto-sync every {minutes} minute(s). Press Ctrl+C to stop.", verbosity)
    passes = asyncio.run(_watch())
    echo_verbose(f"Passes run: {passes}", verbosity)


@sync_group.command('schema')
def sync_schema():
    """Print the SQL for the remote 'logs' table."""
    click.echo(SCHEMA_SQL)
