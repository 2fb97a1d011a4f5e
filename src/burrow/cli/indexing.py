"""burrow reindex / update / index commands."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from burrow.cli.utils import (
    daemon_client,
    load_cli_config,
    make_embedder,
    open_store,
    require_vector_search,
    running_daemon_pid,
)
from burrow.config.models import BurrowConfig
from burrow.core.errors import DaemonError, IndexingError, StoreError
from burrow.core.progress import IndexProgressView, spinner, status
from burrow.daemon.client import poll_progress
from burrow.index.discovery import file_mtime, is_file_modified, is_indexable
from burrow.index.indexer import Indexer, IndexStats


async def _delegate(config: BurrowConfig, *, full: bool, quiet: bool) -> bool:
    """Hand the run to the daemon and follow it to completion.

    Returns False if the daemon could not be reached at all, in which case
    nothing was started and the caller should index in-process.

    Raises:
        DaemonError: The daemon stopped answering while the run was followed.
    """
    client = daemon_client(config)
    try:
        response = await client.start_indexer(full=full)
    except DaemonError as e:
        status(f"Daemon not responding, indexing in-process ({e.message})", style="warning")
        return False

    if not response.started:
        status(response.message)
        return True
    if not quiet:
        status(response.message)

    poll = config.daemon
    if quiet:
        final = await poll_progress(
            client, interval=poll.poll_interval_sec, max_failures=poll.max_poll_failures
        )
    else:
        with IndexProgressView() as view:
            final = await poll_progress(
                client,
                interval=poll.poll_interval_sec,
                max_failures=poll.max_poll_failures,
                on_update=view.update,
            )
    if final.last_result:
        click.echo(final.last_result)
    return True


async def _run_local(indexer: Indexer, *, full: bool, quiet: bool, interval: float) -> IndexStats:
    run = indexer.run_full if full else indexer.run_incremental
    if quiet:
        return await run()

    task = asyncio.create_task(run())
    with IndexProgressView() as view:
        while not task.done():
            view.update(indexer.progress.snapshot())
            await asyncio.wait([task], timeout=interval)
        view.update(indexer.progress.snapshot())
    return await task


def _index_in_process(config: BurrowConfig, *, full: bool, quiet: bool) -> None:
    store = open_store()
    indexer = Indexer(store, make_embedder(config), config)
    try:
        stats = asyncio.run(
            _run_local(indexer, full=full, quiet=quiet, interval=config.daemon.poll_interval_sec)
        )
    except StoreError as e:
        raise click.ClickException(e.message) from e
    finally:
        store.close()

    if stats.indexed + stats.errors == 0 and not quiet:
        status("No files to index" if full else "All files up to date")
    for message in stats.error_messages:
        status(message, style="error")
    click.echo(stats.summary())
    if stats.errors:
        raise SystemExit(1)


def _run_indexing(*, full: bool, quiet: bool) -> None:
    config = load_cli_config()
    require_vector_search(config)

    if running_daemon_pid() is not None:
        try:
            delegated = asyncio.run(_delegate(config, full=full, quiet=quiet))
        except DaemonError as e:
            status(e.message, style="error")
            raise SystemExit(1) from e
        if delegated:
            return

    _index_in_process(config, full=full, quiet=quiet)


@click.command("reindex")
@click.option("-q", "--quiet", is_flag=True, help="Only print the final summary")
def reindex_command(quiet: bool) -> None:
    """Clear the vector index and rebuild it from scratch.

    Delegates to the running daemon when there is one, otherwise indexes
    in this process.
    """
    _run_indexing(full=True, quiet=quiet)


@click.command("update")
@click.option("-q", "--quiet", is_flag=True, help="Only print the final summary")
def update_command(quiet: bool) -> None:
    """Index new and modified files and drop entries for deleted ones."""
    _run_indexing(full=False, quiet=quiet)


@click.command("index")
@click.argument("file", type=click.Path(path_type=Path))
@click.option("-f", "--force", is_flag=True, help="Re-index even if the file is unchanged")
def index_command(file: Path, force: bool) -> None:
    """Index a single FILE, in-process."""
    config = load_cli_config()
    path = file.expanduser().absolute()

    if not path.exists():
        status(f"File not found: {path}", style="error")
        raise SystemExit(1)
    if not path.is_file():
        status(f"Not a file: {path}", style="error")
        raise SystemExit(1)
    if not is_indexable(
        path, config.vector_search.max_file_size_bytes, config.indexer.file_extensions
    ):
        status(f"File type not supported or too large: {path}", style="error")
        raise SystemExit(1)

    store = open_store()
    try:
        if not force and not is_file_modified(file_mtime(path), store.get_mtime(str(path))):
            status(f"File unchanged, use --force to re-index: {path}")
            return

        indexer = Indexer(store, make_embedder(config), config)
        try:
            with spinner(f"Indexing {path.name}"):
                asyncio.run(indexer.index_file(path))
        except (IndexingError, StoreError) as e:
            status(f"Failed: {e.message}", style="error")
            raise SystemExit(1) from e
    except StoreError as e:
        raise click.ClickException(e.message) from e
    finally:
        store.close()

    status(f"Indexed {path}", style="success")
