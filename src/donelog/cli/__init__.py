"""donelog CLI - cloud sync for the done log

This module provides a modular CLI structure for donelog commands:
- config.py: config set, get, show, connect
- sync.py: sync run, test, status, watch, schema
- common.py: shared utilities
"""
from pathlib import Path
import click

# Local imports
from .common import get_base_path, echo_normal, echo_verbose
from .config import config_group
from .sync import sync_group
from ..config import write_config_file, SyncConfig
from ..local_store import LocalLogStore

# CLI version - matches project version
__version__ = "0.1.0"


@click.group()
@click.version_option(version=__version__, prog_name="donelog")
@click.option('--data-dir', type=click.Path(), default=None, envvar='DONELOG_BASE_PATH',
              help='Base directory for donelog data (default: ~/.donelog)')
@click.option('--verbose', '-v', is_flag=True, default=False,
              help='Enable verbose output')
@click.option('--quiet', '-q', is_flag=True, default=False,
              help='Suppress non-essential output')
@click.pass_context
def cli(ctx, data_dir, verbose, quiet):
    """donelog - keep a done log in sync across devices

    \b
    Key Commands:
        init              Create the data directory and config
        config connect    Validate and save the remote connection
        sync run          Run one sync pass
        sync status       Show configuration and last outcome
        sync watch        Sync on an interval

    \b
    Examples:
        donelog init
        donelog config connect --endpoint https://xyz.supabase.co --credential KEY
        donelog sync run
    """
    from .common import VERBOSITY_QUIET, VERBOSITY_NORMAL, VERBOSITY_VERBOSE

    ctx.ensure_object(dict)

    # Validate mutually exclusive flags
    if verbose and quiet:
        raise click.UsageError("--verbose and --quiet are mutually exclusive")

    if quiet:
        ctx.obj['verbosity'] = VERBOSITY_QUIET
    elif verbose:
        ctx.obj['verbosity'] = VERBOSITY_VERBOSE
    else:
        ctx.obj['verbosity'] = VERBOSITY_NORMAL

    ctx.obj['data_dir'] = Path(data_dir) if data_dir else None


@cli.command()
@click.pass_context
def init(ctx):
    """Initialize the donelog data directory.

    Creates config.yaml with an empty sync section plus empty
    entries.json and trash.json. Existing files are left alone.
    """
    verbosity = ctx.obj.get('verbosity', 1)
    base_path = get_base_path(ctx.obj.get('data_dir'))

    base_path.mkdir(parents=True, exist_ok=True)
    config_path = base_path / "config.yaml"
    if config_path.exists():
        echo_normal(f"Already initialized at {base_path}", verbosity)
    else:
        write_config_file(base_path, {"sync": SyncConfig().to_dict()})
        echo_verbose(f"  Created {config_path}", verbosity)

    LocalLogStore(base_path).initialize()
    echo_normal(click.style(f"✓ donelog initialized at {base_path}", fg="green"), verbosity)


# Register config command group (config set, get, show, connect)
cli.add_command(config_group, name='config')

# Register sync command group (sync run, test, status, watch, schema)
cli.add_command(sync_group, name='sync')


def main():
    """Entry point for the CLI."""
    cli()


__all__ = [
    '__version__',
    'cli',
    'main',
    'get_base_path',
]
