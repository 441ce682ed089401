"""
CLI commands for search-sync.

Provides the `search-sync` command-line interface for rebuilding indexes and
reconciling changed or deleted rows of a SQLite database.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import ConfigurationLoader
from .errors import ConfigurationError
from .indexer import Reconciler
from .models import GlobalSettings, OperationStatus, ReconcileResult
from .storage import SqliteDatabase, create_index_client

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

STATUS_STYLES = {
    OperationStatus.SUCCESS: "green",
    OperationStatus.PARTIAL: "yellow",
    OperationStatus.FAILED: "red"
}


def _configure_logging(level: str, log_file: Optional[Path] = None) -> None:
    """Configure root logging for a CLI run"""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )


@click.group()
@click.version_option(version=__version__, prog_name="search-sync")
@click.option(
    '--config', '-c', 'config_path',
    type=click.Path(dir_okay=False, path_type=Path),
    help='Sync configuration file (default: $SEARCH_SYNC_CONFIG_FILE or search-sync.json)'
)
@click.option(
    '--database', '-d', 'database_path',
    type=click.Path(dir_okay=False, path_type=Path),
    help='SQLite database holding the collections (default: $SEARCH_SYNC_DATABASE)'
)
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    help='Logging level (default: $SEARCH_SYNC_LOG_LEVEL or INFO)'
)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[Path], database_path: Optional[Path], log_level: Optional[str]):
    """
    search-sync CLI.

    Keep search indexes consistent with the rows of a relational database.
    """
    settings = GlobalSettings()
    _configure_logging(log_level or settings.log_level, settings.log_file)

    ctx.ensure_object(dict)
    ctx.obj['settings'] = settings
    ctx.obj['config_path'] = config_path or settings.config_file
    ctx.obj['database_path'] = database_path or settings.database


def _run(ctx: click.Context, action: Callable[[Reconciler], Awaitable[List[ReconcileResult]]]) -> None:
    """Build a reconciler from the CLI context, run one action and print its results"""
    database_path = ctx.obj['database_path']
    if database_path is None:
        console.print("[red]❌ No database given. Use --database or set SEARCH_SYNC_DATABASE.[/red]")
        sys.exit(1)
    if not Path(database_path).exists():
        console.print(f"[red]❌ Database not found: {database_path}[/red]")
        sys.exit(1)

    try:
        loader = ConfigurationLoader(ctx.obj['settings'])
        config = loader.load_config(ctx.obj['config_path'])
        index_client = create_index_client(config.server)
    except ConfigurationError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        sys.exit(1)

    database = SqliteDatabase(database_path)
    reconciler = Reconciler(config, index_client, database, database)

    async def run() -> List[ReconcileResult]:
        try:
            return await action(reconciler)
        finally:
            await index_client.close()

    results = asyncio.run(run())
    _print_results(results)


def _print_results(results: List[ReconcileResult]) -> None:
    if not results:
        console.print("[yellow]⚠️  Nothing was reconciled. See the log for details.[/yellow]")
        return

    table = Table(title="Reconcile Results")
    table.add_column("Operation", style="cyan")
    table.add_column("Collection")
    table.add_column("Index")
    table.add_column("Requested", justify="right")
    table.add_column("Upserted", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Status")
    table.add_column("Time (ms)", justify="right", style="dim")

    for result in results:
        style = STATUS_STYLES[result.status]
        table.add_row(
            result.operation,
            result.collection,
            result.index_name,
            str(result.requested),
            str(result.upserted),
            str(result.deleted),
            str(result.failed),
            f"[{style}]{result.status.value}[/{style}]",
            f"{result.processing_time_ms:.1f}"
        )

    console.print(table)

    errors = [error for result in results for error in result.errors]
    for error in errors:
        console.print(f"[red]  • {escape(error)}[/red]")


@main.command()
@click.argument('collection', required=False)
@click.pass_context
def init(ctx: click.Context, collection: Optional[str]):
    """Rebuild one configured index, or all of them."""

    async def action(reconciler: Reconciler) -> List[ReconcileResult]:
        if collection is None:
            return await reconciler.init_all_indexes()
        await reconciler.ensure_index(collection)
        return await reconciler.init_collection_index(collection)

    console.print(f"[blue]📚 Rebuilding {collection or 'all configured'} index(es)...[/blue]")
    _run(ctx, action)


@main.command()
@click.argument('collection')
@click.argument('ids', nargs=-1, required=True)
@click.pass_context
def update(ctx: click.Context, collection: str, ids: tuple):
    """Re-index changed rows of COLLECTION, propagating to related indexes."""

    async def action(reconciler: Reconciler) -> List[ReconcileResult]:
        return await reconciler.update_items(collection, list(ids))

    _run(ctx, action)


@main.command()
@click.argument('collection')
@click.argument('ids', nargs=-1, required=True)
@click.pass_context
def delete(ctx: click.Context, collection: str, ids: tuple):
    """Remove rows of COLLECTION from its index."""

    async def action(reconciler: Reconciler) -> List[ReconcileResult]:
        result = await reconciler.delete_items(collection, list(ids))
        return [result] if result is not None else []

    _run(ctx, action)


if __name__ == '__main__':
    main()
