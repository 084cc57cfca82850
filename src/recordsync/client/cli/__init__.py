"""Command-line interface for recordsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- config: Show or set the server connection
- list: List records
- create: Create a record
- update: Update a record
- delete: Delete a record
- clear-cache: Forget cached record lists
- serve: Run the recordsync server
"""

from __future__ import annotations

import logging
import sys

import click

from recordsync import __version__
from recordsync.client.cli.config import (
    get_cache_path,
    get_config_dir,
    get_config_file,
    get_server_config,
    load_config,
    save_config,
)
from recordsync.client.cli.records import (
    clear_cache,
    create,
    delete,
    list_records,
    update,
)
from recordsync.client.cli.server import serve


@click.group()
@click.version_option(__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """recordsync - Offline-resilient record synchronization."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@cli.command("config")
@click.option("--server", default=None, help="Server URL (e.g., http://localhost:8000).")
@click.option("--token", default=None, help="Bearer token ('' to remove).")
def config_cmd(server: str | None, token: str | None) -> None:
    """Show or change the server connection."""
    config = load_config()
    if server is not None:
        config["server_url"] = server.rstrip("/")
    if token is not None:
        if token:
            config["token"] = token
        else:
            config.pop("token", None)
    if server is not None or token is not None:
        save_config(config)
        click.echo(f"Saved {get_config_file()}")

    server_config = get_server_config(config)
    click.echo(f"Server: {server_config.server_url}")
    click.echo(f"Token:  {'set' if server_config.token else 'not set'}")
    click.echo(f"Cache:  {get_cache_path()}")


# Record commands
cli.add_command(list_records)
cli.add_command(create)
cli.add_command(update)
cli.add_command(delete)
cli.add_command(clear_cache)

# Server command
cli.add_command(serve)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "get_config_dir",
    "main",
]
