"""CLI module for syncing two SQLite databases.

Provides commands to inspect which tables two databases have in common
and to sync their rows with last-write-wins.

Usage:
    db-sync inspect laptop.db server.db
    db-sync sync laptop.db server.db --dry-run
    db-sync sync laptop.db server.db --updated-field modified_at
    db-sync sync laptop.db server.db --tables users,notes --strict

Commands:
    inspect   - Show common/uncommon and eligible/ineligible tables
    sync      - Sync rows of all eligible tables in both directions
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from db_sync.adapters.sqlite import AsyncSQLiteAdapter
from db_sync.config.loader import load_sync_config
from db_sync.config.models import SyncConfig
from db_sync.errors import ConfigError, IntrospectionError
from db_sync.schema.classifier import classify_schemas, primary_key_issue
from db_sync.schema.introspector import SchemaIntrospector
from db_sync.schema.models import TableSchema
from db_sync.schema.reconciler import TableStatus
from db_sync.schema.sync import SyncReport, sync_files

console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Shared helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    """Route log records to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _check_paths(*paths: str) -> bool:
    """Print an error for every path that does not exist."""
    ok = True
    for path in paths:
        if not Path(path).exists():
            console.print(f"[red]Error: path '{path}' does not exist[/red]")
            ok = False
    return ok


def _load_config(args: argparse.Namespace) -> SyncConfig | None:
    """Load the config file and apply command-line overrides.

    Returns:
        The effective ``SyncConfig``, or None after printing an error.
    """
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        config = load_sync_config(config_path)
    except (FileNotFoundError, ConfigError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None

    overrides: dict = {}
    if getattr(args, "updated_field", None):
        overrides["updated_field"] = args.updated_field
    if getattr(args, "tables", None):
        overrides["tables"] = [t.strip() for t in args.tables.split(",") if t.strip()]
    if getattr(args, "strict", False):
        overrides["strict"] = True
    if getattr(args, "no_create", False):
        overrides["create_missing_tables"] = False

    return config.model_copy(update=overrides)


def _key_label(schema: TableSchema) -> str:
    """Key column name, or why the table has no usable key."""
    return schema.primary_key_column or primary_key_issue(schema) or "-"


def _print_report(report: SyncReport) -> None:
    """Render a sync report as rich tables."""
    title = "Sync Plan (dry run)" if report.dry_run else "Sync Results"
    results = Table(title=title, show_header=True, header_style="bold")
    results.add_column("Table", style="dim")
    results.add_column("Status")
    results.add_column("-> Dest new", justify="right", style="green")
    results.add_column("-> Dest upd", justify="right", style="yellow")
    results.add_column("-> Src new", justify="right", style="green")
    results.add_column("-> Src upd", justify="right", style="yellow")
    results.add_column("Unchanged", justify="right")
    results.add_column("Collisions", justify="right", style="magenta")
    results.add_column("Failed", justify="right", style="red")

    status_style = {
        TableStatus.SYNCED: "green",
        TableStatus.PLANNED: "cyan",
        TableStatus.POLICY_VIOLATION: "yellow",
        TableStatus.FAILED: "red",
    }

    def _num(value: int) -> str:
        return str(value) if value > 0 else "-"

    for t in report.tables:
        style = status_style[t.status]
        status = f"[{style}]{t.status.value}[/{style}]"
        if t.created_in_destination:
            status += " [dim](created)[/dim]"
        results.add_row(
            t.table,
            status,
            _num(t.inserted_into_destination),
            _num(t.updated_destination),
            _num(t.inserted_into_source),
            _num(t.updated_source),
            _num(t.unchanged),
            _num(t.collisions),
            _num(t.failed),
        )

    console.print(results)

    if report.skipped:
        console.print()
        console.print("[bold]Skipped tables:[/bold]")
        for s in report.skipped:
            console.print(f"  - {s.table}: [dim]{s.message or s.reason.value}[/dim]")

    problems = [t for t in report.tables if t.errors]
    if problems:
        console.print()
        console.print("[bold]Problems:[/bold]")
        for t in problems:
            for error in t.errors:
                console.print(f"  - [cyan]{t.table}[/cyan]: {error}")

    console.print()
    console.print(
        f"Tables synced: [bold]{len(report.tables_synced)}[/bold], "
        f"skipped: [bold]{len(report.skipped)}[/bold], "
        f"rows to destination: [bold]{report.rows_to_destination}[/bold], "
        f"rows to source: [bold]{report.rows_to_source}[/bold], "
        f"collisions: [bold]{report.total_collisions}[/bold], "
        f"failed rows: [bold]{report.total_failed_rows}[/bold]"
    )


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_inspect(args: argparse.Namespace) -> int:
    """Async implementation for inspect command.

    Args:
        args: Parsed arguments with source and destination.

    Returns:
        0 on success, 1 if either database cannot be introspected.
    """
    source = AsyncSQLiteAdapter(args.source, label="source")
    destination = AsyncSQLiteAdapter(args.destination, label="destination")
    try:
        source_schema = await SchemaIntrospector(source).introspect()
        destination_schema = await SchemaIntrospector(destination).introspect()
    except IntrospectionError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    finally:
        await source.close()
        await destination.close()

    result = classify_schemas(source_schema, destination_schema)

    if result.has_uncommon:
        console.print(
            "[yellow]WARN: some tables are not present in both databases. "
            "Sync creates source-only tables in the destination unless "
            "--no-create is given; destination-only tables are ignored.[/yellow]"
        )

    table = Table(title="Schema Classification", show_header=True, header_style="bold")
    table.add_column("Table")
    table.add_column("Source", justify="center")
    table.add_column("Destination", justify="center")
    table.add_column("Primary key")
    table.add_column("Eligible", justify="center")

    for name in [*result.common_tables, *result.uncommon_tables]:
        schema = source_schema.get(name) or destination_schema.get(name)
        key = _key_label(schema)
        if name in result.eligible_tables:
            eligible = "[green]yes[/green]"
        elif name in result.ineligible_tables:
            eligible = "[red]no[/red]"
        else:
            eligible = "[dim]uncommon[/dim]"
        table.add_row(
            name,
            "v" if name in source_schema.tables else "",
            "v" if name in destination_schema.tables else "",
            key,
            eligible,
        )

    console.print(table)
    return 0


async def _async_sync(args: argparse.Namespace) -> int:
    """Async implementation for sync command.

    Args:
        args: Parsed arguments with source, destination, config,
            updated_field, tables, dry_run, strict and no_create.

    Returns:
        0 on success; 1 on introspection failure, or on any table/row
        failure when strict mode is on.
    """
    config = _load_config(args)
    if config is None:
        return 1

    console.print("Syncing databases...", style="dim")
    console.print(f"  Source: [bold]{args.source}[/bold]")
    console.print(f"  Destination: [bold cyan]{args.destination}[/bold cyan]")
    console.print(f"  Updated field: [dim]{config.updated_field}[/dim]")
    console.print()

    report = await sync_files(
        args.source, args.destination, config=config, dry_run=args.dry_run
    )

    if not report.success:
        console.print(f"[bold red]x[/bold red] Sync aborted: {report.error}")
        return 1

    _print_report(report)

    if args.dry_run:
        console.print()
        console.print("[bold yellow]DRY RUN[/bold yellow] - No changes made.")

    if report.has_failures:
        if config.strict:
            console.print("[bold red]x[/bold red] Sync finished with failures.")
            return 1
        console.print("[yellow]Sync finished with failures (see above).[/yellow]")
    else:
        console.print("[bold green]v[/bold green] Sync complete.")
    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_inspect(args: argparse.Namespace) -> int:
    """Show how the tables of two databases classify.

    Wraps the async implementation with ``asyncio.run()``.
    """
    if not _check_paths(args.source, args.destination):
        return 1
    return asyncio.run(_async_inspect(args))


def cmd_sync(args: argparse.Namespace) -> int:
    """Sync two databases.

    Wraps the async implementation with ``asyncio.run()``.
    """
    if not _check_paths(args.source, args.destination):
        return 1
    return asyncio.run(_async_sync(args))


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-sync",
        description="Last-write-wins row sync between two SQLite databases",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # inspect command
    p_inspect = subparsers.add_parser(
        "inspect",
        help="Show which tables are common and eligible for sync",
    )
    p_inspect.add_argument("source", help="Path to the source database")
    p_inspect.add_argument("destination", help="Path to the destination database")
    p_inspect.set_defaults(func=cmd_inspect)

    # sync command
    p_sync = subparsers.add_parser(
        "sync",
        help="Sync the tables of source and destination",
        description=(
            "Sync the tables of <source> and <destination>. Tables only in "
            "<source> are created in <destination> and synced, unless "
            "--no-create is given; tables only in <destination> are ignored. "
            "Syncing uses last-write-wins, so each table needs a field "
            "recording when the row was last updated."
        ),
    )
    p_sync.add_argument("source", help="Path to the source database")
    p_sync.add_argument("destination", help="Path to the destination database")
    p_sync.add_argument(
        "--updated-field",
        default=None,
        help=(
            "The name of the field used to determine if a record has been "
            "updated; matched ignoring case like SQLite column names "
            "(default: updated_at)"
        ),
    )
    p_sync.add_argument(
        "--config",
        default=None,
        help="Path to db-sync.toml (default: ./db-sync.toml if present)",
    )
    p_sync.add_argument(
        "--tables",
        default=None,
        help="Comma-separated list of tables to sync (default: all)",
    )
    p_sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be synced without making changes",
    )
    p_sync.add_argument(
        "--strict",
        action="store_true",
        help="Exit non-zero if any table or row fails to sync",
    )
    p_sync.add_argument(
        "--no-create",
        action="store_true",
        help="Do not create source-only tables on the destination",
    )
    p_sync.set_defaults(func=cmd_sync)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
