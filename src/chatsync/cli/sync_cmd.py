"""Sync commands: run, check, status, config."""

from __future__ import annotations

import sys
from typing import Optional

import click
from rich.panel import Panel

from ._common import SYNC_HOME, console, get_engine, logger, mask
from ..errors import AuthError, MigrationError, NetworkError, SyncError
from ..sync.engine import PhaseListener, SyncEngine
from ..sync.models import ProviderType, SyncPhase

_PHASE_LABELS = {
    SyncPhase.FETCHING: "Fetching remote state",
    SyncPhase.MERGING: "Merging",
    SyncPhase.PUSHING: "Pushing merged state",
}


def _print_phase(phase: SyncPhase) -> None:
    if phase in _PHASE_LABELS:
        console.print(f"  [dim]{_PHASE_LABELS[phase]}...[/]")


def _load_engine(home: str, listener: Optional[PhaseListener] = None) -> SyncEngine:
    try:
        return get_engine(home, listener)
    except MigrationError as exc:
        console.print(f"[bold red]Config migration failed:[/] {exc}")
        sys.exit(1)


def register_sync_commands(main: click.Group) -> None:
    """Register the sync command group."""

    @main.group()
    def sync():
        """Sync chat state with the configured remote.

        Every run pulls, merges, and pushes back. Local and remote
        both end up holding the union of their sessions.
        """

    @sync.command("run")
    @click.option("--home", default=SYNC_HOME, type=click.Path())
    def sync_run(home):
        """Run one pull -> merge -> push cycle."""
        engine = _load_engine(home, listener=_print_phase)

        if not engine.config.cloud_sync_ready():
            console.print(
                f"[yellow]Provider [cyan]{engine.config.provider.value}[/] "
                "is not fully configured.[/] Run chatsync sync config."
            )
            sys.exit(1)

        console.print()
        try:
            result = engine.sync()
        except AuthError as exc:
            console.print(f"[bold red]Credentials rejected:[/] {exc}")
            sys.exit(1)
        except NetworkError as exc:
            console.print(f"[bold red]Network error:[/] {exc}")
            console.print("  [dim]Nothing was overwritten. Try again later.[/]")
            sys.exit(1)
        except SyncError as exc:
            console.print(f"[bold red]Sync failed:[/] {exc}")
            sys.exit(1)

        first = "\n[yellow]Remote was empty: local state uploaded[/]" if result.remote_was_empty else ""
        console.print(
            Panel(
                f"Provider: [cyan]{result.provider}[/]\n"
                f"Sessions: [bold]{result.sessions}[/] "
                f"([green]+{result.sessions_added}[/])\n"
                f"Messages: [bold]{result.messages}[/] "
                f"([green]+{result.messages_added}[/])\n"
                f"Synced at: {result.synced_at.isoformat()}"
                f"{first}",
                title="Sync Complete",
                border_style="green",
            )
        )

    @sync.command("check")
    @click.option("--home", default=SYNC_HOME, type=click.Path())
    def sync_check(home):
        """Check that the remote is reachable with current credentials."""
        engine = _load_engine(home)
        provider = engine.config.provider.value
        console.print(f"\n  Probing [cyan]{provider}[/]...", end=" ")
        if engine.check():
            console.print("[green]reachable[/]\n")
        else:
            console.print("[red]unreachable[/]\n")
            sys.exit(1)

    @sync.command("status")
    @click.option("--home", default=SYNC_HOME, type=click.Path())
    def sync_status(home):
        """Show provider, readiness, and last sync."""
        engine = _load_engine(home)
        st = engine.status()
        ready = "[green]ready[/]" if st["ready"] else "[yellow]incomplete[/]"
        proxy = f"[cyan]{st['proxy_url']}[/]" if st["proxy_enabled"] else "[dim]off[/]"

        console.print()
        console.print(
            Panel(
                f"Provider: [cyan]{st['provider']}[/] ({ready})\n"
                f"Identity: {st['identity']}\n"
                f"Proxy: {proxy}\n"
                f"Last Sync: {st['last_sync_time'] or '[dim]never[/]'}\n"
                f"Last Provider: {st['last_provider'] or '[dim]none[/]'}\n"
                f"Sessions: [bold]{st['sessions']}[/]  "
                f"Messages: [bold]{st['messages']}[/]",
                title="Sync Status",
                border_style="magenta",
            )
        )
        console.print()

    @sync.command("config")
    @click.option("--home", default=SYNC_HOME, type=click.Path())
    @click.option(
        "--provider",
        type=click.Choice([p.value for p in ProviderType]),
        default=None,
        help="Select the remote backend.",
    )
    @click.option("--endpoint", default=None, help="Server URL (webdav, upstash).")
    @click.option("--username", default=None, help="Account name / remote key.")
    @click.option("--secret", default=None, help="Password (webdav) or API key (upstash).")
    @click.option("--path", "local_path", default=None, help="Directory (local provider).")
    @click.option("--proxy/--no-proxy", default=None, help="Route requests through the proxy.")
    @click.option("--proxy-url", default=None, help="Proxy base URL.")
    def sync_config(
        home: str,
        provider: Optional[str],
        endpoint: Optional[str],
        username: Optional[str],
        secret: Optional[str],
        local_path: Optional[str],
        proxy: Optional[bool],
        proxy_url: Optional[str],
    ):
        """Edit the sync configuration.

        Options apply to the selected provider. With no options, the
        current configuration is shown.

        Examples:

            chatsync sync config --provider webdav --endpoint https://dav.example.com

            chatsync sync config --username alice --secret hunter2
        """
        engine = _load_engine(home)
        config = engine.config

        if provider is not None:
            config.provider = ProviderType(provider)
        block = config.provider_config()

        if endpoint is not None and hasattr(block, "endpoint"):
            block.endpoint = endpoint
        if username is not None:
            block.username = username
        if secret is not None:
            if config.provider == ProviderType.WEBDAV:
                config.webdav.password = secret
            elif config.provider == ProviderType.UPSTASH:
                config.upstash.api_key = secret
        if local_path is not None:
            config.local.path = local_path
        if proxy is not None:
            config.proxy_enabled = proxy
        if proxy_url is not None:
            config.proxy_url = proxy_url

        engine.save_config()
        logger.info("Sync config updated for %s", config.provider.value)

        lines = [f"Provider: [cyan]{config.provider.value}[/]"]
        if config.provider == ProviderType.WEBDAV:
            lines += [
                f"Endpoint: {config.webdav.endpoint or '[yellow]empty[/]'}",
                f"Username: {config.webdav.username or '[yellow]empty[/]'}",
                f"Password: {mask(config.webdav.password)}",
            ]
        elif config.provider == ProviderType.UPSTASH:
            lines += [
                f"Endpoint: {config.upstash.endpoint or '[yellow]empty[/]'}",
                f"Key: {config.upstash.username or '[yellow]empty[/]'}",
                f"API Key: {mask(config.upstash.api_key)}",
            ]
        else:
            lines += [
                f"Path: {config.local.path or '[yellow]empty[/]'}",
                f"Key: {config.local.username or '[yellow]empty[/]'}",
            ]
        lines.append(
            f"Proxy: {'[green]on[/] ' + config.proxy_url if config.proxy_enabled else '[dim]off[/]'}"
        )
        console.print(Panel("\n".join(lines), title="Sync Config", border_style="cyan"))
