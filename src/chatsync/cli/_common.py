"""Shared utilities for all CLI command modules.

Provides the Rich console instance and the engine/store constructors
used across every command group.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console

from .. import SYNC_HOME
from ..store import LocalStore
from ..sync.engine import PhaseListener, SyncEngine

console = Console()
logger = logging.getLogger("chatsync.cli")


def get_engine(home: str, listener: Optional[PhaseListener] = None) -> SyncEngine:
    """Build a SyncEngine rooted at ``home`` (config migrated on load)."""
    return SyncEngine(Path(home).expanduser(), listener=listener)


def get_store(home: str) -> LocalStore:
    return LocalStore(Path(home).expanduser())


def mask(value: str) -> str:
    """Render a credential for display without revealing it."""
    return "[green]set[/]" if value else "[yellow]empty[/]"


__all__ = ["SYNC_HOME", "console", "get_engine", "get_store", "logger", "mask"]
