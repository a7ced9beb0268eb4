"""
Local persistence for the synchronized Document.

The sync engine is the only writer. Writes go to a temp file that is
atomically renamed over ``state.json``; reads and writes share one
lock, so a reader sees either the old document or the new one.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from . import SYNC_HOME
from .errors import ValidationError
from .models import Document

logger = logging.getLogger("chatsync.store")

STATE_FILENAME = "state.json"


def parse_document(raw: str, source: str = "payload") -> Document:
    """Deserialize a Document from JSON text.

    Raises:
        ValidationError: If ``raw`` is not JSON or does not match the schema.
    """
    try:
        return Document.model_validate_json(raw)
    except (PydanticValidationError, json.JSONDecodeError, ValueError) as exc:
        raise ValidationError(f"Invalid {source}: {exc}") from exc


def serialize_document(doc: Document) -> str:
    return doc.model_dump_json()


class LocalStore:
    """Owns ``<home>/state.json`` between sync cycles.

    Args:
        home: Sync home directory. Defaults to ~/.chatsync.
    """

    def __init__(self, home: Optional[Path] = None):
        self.home = Path(home or SYNC_HOME).expanduser()
        self.path = self.home / STATE_FILENAME
        self._lock = threading.RLock()

    def read(self) -> Document:
        """Load the local Document. A missing file is an empty Document.

        Raises:
            ValidationError: If the file on disk is corrupt.
        """
        with self._lock:
            if not self.path.exists():
                return Document()
            raw = self.path.read_text(encoding="utf-8")
        return parse_document(raw, source=str(self.path))

    def write(self, doc: Document) -> None:
        """Atomically replace the persisted Document."""
        payload = serialize_document(doc)
        with self._lock:
            self.home.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=self.home, prefix=".state-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp, self.path)
            except OSError:
                Path(tmp).unlink(missing_ok=True)
                raise
        logger.debug(
            "Local state written: %d session(s), %d message(s)",
            len(doc.sessions),
            doc.message_count(),
        )
