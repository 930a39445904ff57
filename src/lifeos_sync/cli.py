"""CLI tool for inspecting and repairing lifeos-sync state."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import typer
from typing_extensions import Annotated

from lifeos_sync.config import load_settings
from lifeos_sync.engine.conflict import count_entries
from lifeos_sync.engine.persistence_engine import PersistenceEngine
from lifeos_sync.observability.logging import setup_logging


app = typer.Typer(help="Life OS persistence and sync management CLI")
backups_app = typer.Typer(help="Manage snapshot backups")

app.add_typer(backups_app, name="backups")


def get_engine() -> PersistenceEngine:
    return PersistenceEngine(load_settings())


def run_with_engine(command: Callable[[PersistenceEngine], Any]) -> Any:
    """Starts an engine, runs command against it, and shuts it down."""

    async def main():
        engine = get_engine()
        await engine.start(start_scheduler=False)
        try:
            return command(engine)
        finally:
            await engine.stop()

    return asyncio.run(main())


def _format_ms(ms: Optional[int]) -> str:
    if not ms:
        return "never"
    return datetime.fromtimestamp(ms / 1000).isoformat(timespec="seconds")


@app.command("status")
def status():
    """Shows what the engine currently holds."""
    result = run_with_engine(lambda engine: engine.status())
    typer.echo(result.model_dump_json(indent=2))


@app.command("export")
def export(
    output: Annotated[
        Optional[Path], typer.Option(help="Write to this file instead of stdout")
    ] = None,
):
    """Exports the current document as JSON."""
    text = run_with_engine(lambda engine: engine.export_json())
    if output is None:
        typer.echo(text)
        return
    output.write_text(text, encoding="utf-8")
    typer.echo(f"Exported to {output}")


@app.command("import")
def import_document(
    file_path: Annotated[Path, typer.Argument(help="Path to an exported JSON file")],
):
    """Replaces the current document with an exported one."""
    if not file_path.exists():
        typer.echo(f"Error: File not found: {file_path}", err=True)
        raise typer.Exit(code=1)

    text = file_path.read_text(encoding="utf-8")
    if not run_with_engine(lambda engine: engine.import_json(text)):
        typer.echo("Error: File is not a valid Life OS export.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Imported {file_path}")


@app.command("reset")
def reset(
    yes: Annotated[
        bool, typer.Option("--yes", help="Skip the confirmation prompt")
    ] = False,
):
    """Clears local state. Backups and the object store keep their copies."""
    if not yes:
        typer.confirm("Clear local state?", abort=True)
    run_with_engine(lambda engine: engine.reset())
    typer.echo("Local state cleared.")


@app.command("sync")
def sync():
    """Runs one startup reconciliation with the remote store."""
    result = run_with_engine(lambda engine: engine.status())
    if not result.remote_configured:
        typer.echo("Remote sync is not configured.")
        return
    if result.last_remote_error:
        typer.echo(f"Sync failed: {result.last_remote_error}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Synced. Last remote save: {_format_ms(result.last_remote_sync_ms)}")


@backups_app.command("list")
def backups_list():
    """Lists backups, newest first."""
    records = run_with_engine(lambda engine: engine.list_backups())
    if not records:
        typer.echo("No backups found.")
        return

    for index, record in enumerate(records):
        typer.echo(
            f"[{index}] {_format_ms(record.timestamp)} {record.reason} "
            f"({count_entries(record.data)} entries)"
        )


@backups_app.command("create")
def backups_create(
    reason: Annotated[str, typer.Option(help="Why the backup is taken")] = "manual",
):
    """Takes a backup of the current document."""
    if not run_with_engine(lambda engine: engine.create_backup(reason)):
        typer.echo("Error: Nothing to back up.", err=True)
        raise typer.Exit(code=1)
    typer.echo("Backup saved.")


@backups_app.command("restore")
def backups_restore(
    index: Annotated[int, typer.Argument(help="Backup index from 'backups list'")] = 0,
):
    """Restores a backup and propagates it to every tier."""
    if not run_with_engine(lambda engine: engine.restore_from_backup(index)):
        typer.echo(f"Error: No backup found at index {index}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Restored backup {index}.")


def main():
    setup_logging()
    app()


if __name__ == "__main__":
    main()
