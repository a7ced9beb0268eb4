"""Session commands: new, add, list."""

from __future__ import annotations

import sys

import click
from rich.table import Table

from ._common import SYNC_HOME, console, get_store
from ..errors import ValidationError
from ..models import Document, MessageRole
from ..store import LocalStore


def _read(store: LocalStore) -> Document:
    try:
        return store.read()
    except ValidationError as exc:
        console.print(f"[red]Local state is unreadable:[/] {exc}")
        sys.exit(1)


def register_session_commands(main: click.Group) -> None:
    """Register the session command group."""

    @main.group()
    def session():
        """Local chat sessions — the state that gets synced."""

    @session.command("new")
    @click.option("--home", default=SYNC_HOME, type=click.Path())
    @click.option("--topic", default="", help="Session title.")
    def session_new(home: str, topic: str):
        """Create an empty session."""
        store = get_store(home)
        doc = _read(store)
        created = doc.new_session(topic=topic)
        store.write(doc)
        console.print(f"[green]Session created:[/] {created.id}")

    @session.command("add")
    @click.argument("session_id")
    @click.argument("content")
    @click.option(
        "--role",
        type=click.Choice([r.value for r in MessageRole]),
        default=MessageRole.USER.value,
    )
    @click.option("--home", default=SYNC_HOME, type=click.Path())
    def session_add(session_id: str, content: str, role: str, home: str):
        """Append a message to a session."""
        store = get_store(home)
        doc = _read(store)
        try:
            msg = doc.add_message(session_id, role, content)
        except KeyError:
            console.print(f"[red]No session with id {session_id}[/]")
            sys.exit(1)
        store.write(doc)
        console.print(f"[green]Message added:[/] {msg.id}")

    @session.command("list")
    @click.option("--home", default=SYNC_HOME, type=click.Path())
    def session_list(home: str):
        """List sessions, most recent first."""
        doc = _read(get_store(home))
        if not doc.sessions:
            console.print("[dim]No sessions yet.[/]")
            return

        table = Table(title="Sessions")
        table.add_column("ID", style="cyan")
        table.add_column("Topic")
        table.add_column("Messages", justify="right")
        table.add_column("Last Modified")
        for s in doc.sessions:
            table.add_row(
                s.id, s.topic or "[dim]untitled[/]", str(len(s.messages)),
                s.last_modified.isoformat(),
            )
        console.print(table)
