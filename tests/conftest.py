"""Shared test fixtures for chatsync."""

from __future__ import annotations

from pathlib import Path

import pytest

from chatsync.models import Document, SyncMeta
from helpers import msg, session, ts


@pytest.fixture
def sync_home(tmp_path: Path) -> Path:
    """Provide a temporary sync home directory."""
    home = tmp_path / ".chatsync"
    home.mkdir()
    return home


@pytest.fixture
def local_doc() -> Document:
    """Local side of the reference scenario: S1 with m1@1, m2@2."""
    return Document(
        sessions=[session("S1", msg("m1", 1, "hello"), msg("m2", 2), modified=2)],
        settings={"theme": "dark"},
    )


@pytest.fixture
def remote_doc() -> Document:
    """Remote side: S1 with m1 edited at t=5 plus m3@3, and S2."""
    return Document(
        sessions=[
            session("S1", msg("m1", 5, "hello (edited)"), msg("m3", 3), modified=5),
            session("S2", msg("x1", 4), modified=4, topic="other device"),
        ],
        settings={"theme": "light"},
        sync_meta=SyncMeta(settings_updated_at=ts(1)),
    )
