"""burrow progress / search / health / stats commands."""

from __future__ import annotations

import asyncio

import click
from rich.markup import escape

from burrow.cli.utils import (
    daemon_client,
    echo_json,
    load_cli_config,
    make_embedder,
    open_store,
    query_daemon,
    require_vector_search,
    running_daemon_pid,
)
from burrow.config import paths
from burrow.config.models import BurrowConfig
from burrow.core.errors import DaemonError, IndexingError, StoreError
from burrow.core.progress import flag, get_stdout, heading, key_value, pluralize, status
from burrow.index.status import HealthStatus, StatsReport, check_health, collect_stats
from burrow.index.store import VectorStore


@click.command("progress")
@click.option("--json", "as_json", is_flag=True, help="Print the raw progress snapshot")
def progress_command(as_json: bool) -> None:
    """Show the daemon's indexer progress."""
    config = load_cli_config()
    if running_daemon_pid() is None:
        click.echo("No daemon running. Progress is only tracked while the daemon runs.")
        return

    try:
        snapshot = asyncio.run(daemon_client(config).progress())
    except DaemonError as e:
        status(e.message, style="error")
        raise SystemExit(1) from e

    if as_json:
        echo_json(snapshot)
        return

    heading("Indexer")
    if snapshot.running:
        key_value("State", f"running ({snapshot.phase})")
        key_value("Progress", f"{snapshot.processed}/{snapshot.total}")
        key_value("Errors", str(snapshot.errors))
        if snapshot.current_file:
            key_value("Current file", snapshot.current_file)
    else:
        key_value("State", "idle")
        key_value("Last result", snapshot.last_result or "-")


@click.command("search")
@click.argument("query")
@click.option(
    "-n", "--limit", type=click.IntRange(min=1), default=None, help="Max results (default: top_k)"
)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
def search_command(query: str, limit: int | None, as_json: bool) -> None:
    """Semantic search over indexed files."""
    config = load_cli_config()
    require_vector_search(config)
    vs = config.vector_search

    store = open_store()
    try:
        try:
            vector = asyncio.run(make_embedder(config).embed(query))
        except IndexingError as e:
            status(f"Embedding failed: {e.message}", style="error")
            raise SystemExit(1) from e
        hits = store.search(vector, limit or vs.top_k, vs.min_score)
    except StoreError as e:
        raise click.ClickException(e.message) from e
    finally:
        store.close()

    if as_json:
        echo_json([hit._asdict() for hit in hits])
        return
    if not hits:
        click.echo("No matches")
        return

    out = get_stdout()
    for hit in hits:
        out.print(f"[cyan]{hit.score:.3f}[/cyan]  {escape(hit.path)}", highlight=False)
        preview = " ".join(hit.preview.split())
        if preview:
            out.print(f"       [dim]{escape(preview[:100])}[/dim]", highlight=False)


async def _local_health(config: BurrowConfig, store: VectorStore | None) -> HealthStatus:
    return await check_health(config, store, make_embedder(config))


@click.command("health")
@click.option("--json", "as_json", is_flag=True, help="Print the health report as JSON")
def health_command(as_json: bool) -> None:
    """Check Ollama, the vector DB and the API key.

    Exits 0 only when Ollama and the vector DB are both reachable.
    """
    config = load_cli_config()
    report = query_daemon(config, lambda c: c.health())
    if report is None:
        try:
            store: VectorStore | None = VectorStore(paths.vector_db_path())
        except StoreError as e:
            status(e.message, style="warning")
            store = None
        try:
            report = asyncio.run(_local_health(config, store))
        finally:
            if store is not None:
                store.close()

    if as_json:
        echo_json(report)
    else:
        heading("Health")
        flag("Ollama", report.ollama)
        flag("Vector DB", report.vector_db)
        flag("API key", report.api_key)
        if report.indexing:
            key_value("Indexing", "in progress")
        for issue in report.issues:
            status(issue, style="warning", indent=2)

    if not report.core_ok:
        raise SystemExit(1)


def _local_stats() -> StatsReport:
    store = open_store()
    try:
        return collect_stats(store, paths.history_db_path())
    except StoreError as e:
        raise click.ClickException(e.message) from e
    finally:
        store.close()


@click.command("stats")
@click.option("--json", "as_json", is_flag=True, help="Print statistics as JSON")
def stats_command(as_json: bool) -> None:
    """Show index and launch-history statistics."""
    config = load_cli_config()
    report = query_daemon(config, lambda c: c.stats()) or _local_stats()

    if as_json:
        echo_json(report)
        return
    heading("Statistics")
    key_value("Indexed files", pluralize(report.indexed_files, "file"))
    key_value("Launches", str(report.launch_count))
    key_value("Last indexed", report.last_indexed or "never")
