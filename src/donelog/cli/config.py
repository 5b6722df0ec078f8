"""Configuration management commands for donelog CLI."""
import asyncio
import sys
import click

# Local imports
from .common import (
    get_base_path, require_initialized, echo_quiet, echo_normal,
    record_result, report_result,
)
from ..config import SyncConfig, load_config, save_config, read_config_file, write_config_file
from ..local_store import LocalLogStore
from ..sync import SyncOrchestrator, SyncResult, connection

# Keys whose change counts as a reconfiguration of the remote connection
CONNECTION_KEYS = ("sync.endpoint", "sync.credential")
SECRET_KEYS = ("credential",)


@click.group()
def config_group():
    """Configuration management commands."""
    pass


@config_group.command('set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def config_set(ctx, key: str, value: str) -> None:
    """Set a configuration value.

    Args:
        key: Configuration key (e.g., 'sync.endpoint')
        value: Value to set

    Examples:
        donelog config set sync.endpoint https://xyz.supabase.co
        donelog config set sync.auto_sync true
        donelog config set sync.interval_minutes 15
    """
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', 1)
    require_initialized(base_path)

    try:
        config_data = read_config_file(base_path)

        # Parse nested keys (e.g., 'sync.endpoint')
        keys = key.split('.')
        current = config_data
        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

        # Reject values the sync layer cannot use
        SyncConfig.from_dict(config_data.get('sync'))

        write_config_file(base_path, config_data)
    except ValueError as e:
        echo_quiet(click.style(f"Error: Invalid value for {key}: {e}", fg="red"))
        sys.exit(1)
    except Exception as e:
        echo_quiet(click.style(f"Error: Failed to set config: {e}", fg="red"))
        sys.exit(1)

    if key in CONNECTION_KEYS:
        LocalLogStore(base_path).clear_failure()

    shown = "****" if keys[-1] in SECRET_KEYS else value
    echo_normal(click.style(f"✓ Set {key} = {shown}", fg="green"), verbosity)


@config_group.command('get')
@click.argument('key')
@click.pass_context
def config_get(ctx, key: str) -> None:
    """Get a configuration value.

    Examples:
        donelog config get sync.endpoint
    """
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', 1)
    require_initialized(base_path)

    current = read_config_file(base_path)
    for k in key.split('.'):
        if not isinstance(current, dict) or k not in current:
            echo_quiet(click.style(f"Key '{key}' not found", fg="yellow"))
            sys.exit(1)
        current = current[k]

    echo_quiet(str(current))


@config_group.command('show')
@click.pass_context
def config_show(ctx) -> None:
    """Display full configuration (credential masked)."""
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', 1)
    require_initialized(base_path)

    config_data = read_config_file(base_path)
    sync_data = config_data.get('sync')
    if isinstance(sync_data, dict) and sync_data.get('credential'):
        sync_data['credential'] = "****"

    import yaml
    echo_normal(click.style("Current configuration:", fg="cyan", bold=True), verbosity)
    echo_quiet(yaml.dump(config_data, default_flow_style=False, sort_keys=False))


@config_group.command('connect')
@click.option('--endpoint', required=True, help='Supabase project URL')
@click.option('--credential', required=True, help='Supabase API key')
@click.option('--sync/--no-sync', 'run_sync', default=True,
              help='Run a sync pass right after saving (default: on)')
@click.pass_context
def config_connect(ctx, endpoint: str, credential: str, run_sync: bool) -> None:
    """Validate a remote connection, save it and sync once.

    The settings are only written if a test read against the 'logs'
    table succeeds. A first sync pass then runs over the local log;
    a failed pass exits 1 but keeps the saved connection.

    Examples:
        donelog config connect --endpoint https://xyz.supabase.co --credential eyJhbGciOi...
    """
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', 1)
    require_initialized(base_path)

    endpoint = endpoint.strip()
    credential = credential.strip()
    if not endpoint or not credential:
        click.echo("Error: Please fill in all fields.", err=True)
        sys.exit(1)

    current = load_config(base_path)
    echo_normal(f"Checking connection to {endpoint}...", verbosity)

    ok = asyncio.run(connection.test_connection(endpoint, credential, table=current.table))
    if not ok:
        click.echo("Error: Connection failed. Check the URL, the key and that the 'logs' table exists.", err=True)
        click.echo("Run 'donelog sync schema' for the table definition.", err=True)
        sys.exit(1)

    current.endpoint = endpoint
    current.credential = credential
    save_config(base_path, current)
    local_log = LocalLogStore(base_path)
    local_log.clear_failure()

    echo_normal(click.style("✓ Connection saved", fg="green"), verbosity)

    if not run_sync:
        return

    async def _first_pass() -> SyncResult:
        orchestrator = SyncOrchestrator(current, local_log)
        try:
            return await orchestrator.sync_local()
        finally:
            await orchestrator.close()

    result = asyncio.run(_first_pass())
    record_result(local_log, result)
    report_result(result, verbosity)
    if not result.success:
        sys.exit(1)
