"""Backup commands: export, import, list."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.panel import Panel
from rich.table import Table

from ._common import SYNC_HOME, console, get_engine, get_store
from ..errors import MigrationError, SyncInProgressError, ValidationError


def register_backup_commands(main: click.Group) -> None:
    """Register the backup command group."""

    @main.group()
    def backup():
        """Manual snapshots — export and import the full chat state.

        Importing merges the snapshot into local state, exactly like a
        sync with the file playing the remote.
        """

    @backup.command("export")
    @click.option("--home", default=SYNC_HOME, type=click.Path(), help="Sync home directory.")
    @click.option("--output", "-o", default=None, type=click.Path(), help="Output directory.")
    def backup_export(home: str, output: str):
        """Write the current state to a Backup-<timestamp>.json file.

        Examples:

            chatsync backup export

            chatsync backup export -o /mnt/usb/backups
        """
        from ..backup import export_snapshot

        store = get_store(home)
        out_dir = Path(output).expanduser() if output else None
        try:
            result = export_snapshot(store, output_dir=out_dir)
        except ValidationError as exc:
            console.print(f"[red]Export failed:[/] {exc}")
            sys.exit(1)

        console.print(Panel(
            f"[bold green]Snapshot exported[/]\n"
            f"Sessions: {result['sessions']}\n"
            f"Messages: {result['messages']}\n"
            f"Path: [cyan]{result['filepath']}[/]",
            title="Export Complete",
            border_style="green",
        ))

    @backup.command("import")
    @click.argument("snapshot")
    @click.option("--home", default=SYNC_HOME, type=click.Path(), help="Sync home directory.")
    def backup_import(snapshot: str, home: str):
        """Merge a snapshot file into the local state.

        Examples:

            chatsync backup import Backup-2026-10-19_09-30-00-000000.json
        """
        try:
            result = get_engine(home).import_snapshot_file(snapshot)
        except (
            FileNotFoundError,
            MigrationError,
            SyncInProgressError,
            ValidationError,
        ) as exc:
            console.print(f"[red]Import failed:[/] {exc}")
            sys.exit(1)

        console.print(Panel(
            f"[bold green]Snapshot merged[/]\n"
            f"New sessions: {result.sessions_added}\n"
            f"New messages: {result.messages_added}\n"
            f"Total sessions: {result.sessions}",
            title="Import Complete",
            border_style="green",
        ))

    @backup.command("list")
    @click.option("--home", default=SYNC_HOME, type=click.Path(), help="Sync home directory.")
    def backup_list(home: str):
        """List exported snapshots, newest first."""
        from ..backup import list_backups

        backups = list_backups(Path(home).expanduser() / "backups")
        if not backups:
            console.print("[dim]No backups found.[/]")
            return

        table = Table(title="Backups")
        table.add_column("File", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Created")
        for b in backups:
            table.add_row(b["filename"], f"{b['size'] / 1024:.1f} KB", b["created"])
        console.print(table)
