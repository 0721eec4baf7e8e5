#!/usr/bin/env python3
"""CLI for the GSDTA yearly data import.

Commands:
    import      Import the yearly workbook into Firestore (or the local store)
    init-db     Create or reset the local SQLite document store
    status      Show document counts in the local store
    grades      Show the workbook grade-label mapping
"""

import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gsdta import __version__
from gsdta.config import BACKENDS, ImportConfig, ImportSelection
from gsdta.database.connection import DB_PATH, init_database, verify_database
from gsdta.importer import ImportSummary, run_import
from gsdta.importer.normalize import GRADE_CATALOG, GRADE_MAPPING
from gsdta.logutils import LogConfig, configure_logging, get_logger

# Load .env file from current directory if available
load_dotenv()

console = Console()
logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="gsdta")
@click.option("--verbose", "-v", is_flag=True, help="Show debug log lines")
def cli(verbose: bool):
    """GSDTA data tools - import the yearly registration workbook."""
    if verbose:
        config = LogConfig.from_env()
        config.level = "DEBUG"
        configure_logging(config)


def _print_summary(summary: ImportSummary) -> None:
    table = Table(title="Import Summary")
    table.add_column("Entity", style="cyan")
    table.add_column("Imported", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Assigned", justify="right")

    for name, result in summary.results.items():
        assigned = result.students_assigned
        table.add_row(
            name.title(),
            str(result.imported),
            str(result.skipped),
            str(result.errors),
            "-" if assigned is None else str(assigned),
        )
    console.print(table)

    report = summary.report
    if report.is_clean:
        console.print("[green]✓ No problems found[/green]")
    else:
        problems = Table(title="Problems", show_header=True)
        problems.add_column("Kind", style="yellow")
        problems.add_column("Where")
        problems.add_column("Detail")
        for item in report.unmapped_grades:
            problems.add_row("Unmapped grade", f"{item.entity} row {item.row}", item.label)
        for sheet in report.unresolved_sheets:
            problems.add_row("Unresolved sheet", sheet, "cannot determine grade")
        for item in report.students_not_found:
            problems.add_row("Student not found", item.sheet, item.name)
        for item in report.row_errors:
            where = item.entity if item.row is None else f"{item.entity} row {item.row}"
            problems.add_row("Error", where, item.message)
        console.print(problems)

    if summary.dry_run:
        console.print("[magenta]*** DRY RUN COMPLETE - No data was written ***[/magenta]")
    else:
        console.print(f"[green]✓ Import complete (run {summary.run_id})[/green]")


@cli.command("import")
@click.option("--dry-run", is_flag=True, help="Log intended writes without writing anything")
@click.option("--test", "use_test_data", is_flag=True, help="Use the test workbook")
@click.option("--students", is_flag=True, help="Import students and parent accounts")
@click.option("--teachers", is_flag=True, help="Import teachers")
@click.option("--textbooks", is_flag=True, help="Import textbooks")
@click.option("--classes", is_flag=True, help="Create classes and assign roster students")
@click.option("--volunteers", is_flag=True, help="Import high-school volunteers")
@click.option("--all", "all_", is_flag=True, help="Import everything (default)")
@click.option(
    "--workbook",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Workbook to import (overrides --test and IMPORT_WORKBOOK)",
)
@click.option(
    "--backend",
    type=click.Choice(BACKENDS),
    default=None,
    help="Target backend (default: IMPORT_BACKEND or firestore)",
)
def import_data(
    dry_run: bool,
    use_test_data: bool,
    students: bool,
    teachers: bool,
    textbooks: bool,
    classes: bool,
    volunteers: bool,
    all_: bool,
    workbook: Optional[Path],
    backend: Optional[str],
):
    """Import the yearly workbook."""
    selection = ImportSelection.from_flags(
        students=students,
        teachers=teachers,
        textbooks=textbooks,
        classes=classes,
        volunteers=volunteers,
        all_=all_,
    )

    try:
        config = ImportConfig.from_env(
            dry_run=dry_run,
            use_test_data=use_test_data,
            selection=selection,
            workbook_path=workbook,
            backend=backend,
        )
        console.print(Panel(f"[bold]GSDTA Data Import[/bold]\nTarget: {config.target_label}"))
        summary = run_import(config)
    except Exception as e:
        logger.error("Fatal error: %s", e, exc_info=True)
        console.print(f"[red]Import failed: {e}[/red]")
        sys.exit(1)

    _print_summary(summary)


@cli.command()
@click.option("--force", is_flag=True, help="Force reset existing database")
@click.option("--db", "db_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
def init_db(force: bool, db_path: Optional[Path]):
    """Initialize or reset the local document store."""
    path = db_path or DB_PATH
    if not force and path.exists():
        if not click.confirm("Database exists. Reset it?", default=False):
            console.print("[yellow]Aborted.[/yellow]")
            return
        force = True

    console.print("[blue]Initializing database...[/blue]")
    init_database(path, force=force)
    info = verify_database(path)

    console.print("[green]✓ Database initialized[/green]")
    console.print(f"  Path: {info.get('path')}")
    console.print(f"  Tables: {', '.join(info.get('tables', []))}")


@cli.command()
@click.option("--db", "db_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
def status(db_path: Optional[Path]):
    """Show document counts in the local store."""
    info = verify_database(db_path or DB_PATH)
    if not info.get("exists"):
        console.print(f"[red]{info.get('error', 'Database not found')}[/red]")
        console.print("Run: gsdta init-db")
        return

    console.print(Panel("[bold]Database Status[/bold]"))
    table = Table(show_header=False)
    table.add_column("Item", style="cyan")
    table.add_column("Value")

    for collection, count in info.get("collections", {}).items():
        table.add_row(collection.title(), str(count))
    table.add_row("Accounts", str(info.get("accounts", 0)))

    console.print(table)


@cli.command()
def grades():
    """Show how workbook grade labels map to grade IDs."""
    names = {grade_id: display for grade_id, _, display in GRADE_CATALOG}

    table = Table(title="Grade Mapping")
    table.add_column("Workbook label")
    table.add_column("Grade ID", style="cyan")
    table.add_column("Display name")

    for label, grade_id in GRADE_MAPPING.items():
        table.add_row(label, grade_id, names.get(grade_id, "-"))

    console.print(table)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
