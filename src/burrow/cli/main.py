"""Burrow CLI - burrow command."""

import click

from burrow.cli.daemon import daemon_group
from burrow.cli.indexing import index_command, reindex_command, update_command
from burrow.cli.info import health_command, progress_command, search_command, stats_command
from burrow.core.logging import configure_logging


@click.group()
@click.version_option(package_name="burrow", prog_name="burrow")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Burrow - semantic file indexing for the launcher."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    # Client commands report through the console; `daemon start` reconfigures
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(reindex_command, name="reindex")
cli.add_command(update_command, name="update")
cli.add_command(index_command, name="index")
cli.add_command(progress_command, name="progress")
cli.add_command(search_command, name="search")
cli.add_command(health_command, name="health")
cli.add_command(stats_command, name="stats")
cli.add_command(daemon_group, name="daemon")


if __name__ == "__main__":
    cli()
