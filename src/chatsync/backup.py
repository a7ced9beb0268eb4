"""Manual snapshot export and import.

Export writes the local Document verbatim to a timestamped JSON file.
Import validates a file against the Document schema and merges it into
the local state with the same engine a network sync uses, the imported
snapshot playing the remote's part. Nothing local is touched unless the
whole payload validates.

Filename layout:
    Backup-<YYYY-MM-DD_HH-MM-SS-ffffff>.json   (UTC)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from . import SYNC_HOME
from .store import LocalStore, parse_document, serialize_document
from .sync.merge import merge_documents

logger = logging.getLogger("chatsync.backup")

BACKUP_PREFIX = "Backup-"


class ImportResult(BaseModel):
    """Outcome of an import.

    Attributes:
        reload_required: Callers must re-read state from the store.
        sessions_added: Sessions that were not present locally.
        messages_added: Net growth in message count.
        sessions: Session count after the merge.
    """

    reload_required: bool = True
    sessions_added: int = 0
    messages_added: int = 0
    sessions: int = 0


def backup_filename(now: Optional[datetime] = None) -> str:
    """Human-readable, collision-resistant backup filename."""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d_%H-%M-%S-%f")
    return f"{BACKUP_PREFIX}{stamp}.json"


def export_snapshot(
    store: LocalStore,
    output_dir: Optional[Path] = None,
) -> dict[str, Any]:
    """Write the current local Document to a backup file.

    Args:
        store: Local Document store.
        output_dir: Where to write. Defaults to <home>/backups.

    Returns:
        dict: Result with 'filepath', 'filename', 'sessions', 'messages', 'size'.
    """
    doc = store.read()
    out_dir = (output_dir or store.home / "backups").expanduser()
    out_dir.mkdir(parents=True, exist_ok=True)

    filename = backup_filename()
    path = out_dir / filename
    payload = serialize_document(doc)
    path.write_text(payload, encoding="utf-8")

    logger.info(
        "Snapshot exported: %s (%d sessions, %d messages)",
        path, len(doc.sessions), doc.message_count(),
    )
    return {
        "filepath": str(path),
        "filename": filename,
        "sessions": len(doc.sessions),
        "messages": doc.message_count(),
        "size": len(payload.encode("utf-8")),
    }


def import_snapshot(store: LocalStore, raw: str) -> ImportResult:
    """Merge a serialized snapshot into the local Document.

    Reads and writes ``store`` without locking. When a SyncEngine owns
    the store, go through ``SyncEngine.import_snapshot`` instead.

    Args:
        store: Local Document store.
        raw: Backup file contents.

    Returns:
        ImportResult; ``reload_required`` tells the caller to re-read state.

    Raises:
        ValidationError: If ``raw`` does not match the Document schema.
    """
    imported = parse_document(raw, source="backup file")
    local = store.read()
    merged = merge_documents(local, imported)
    store.write(merged)

    result = ImportResult(
        sessions_added=len(
            {s.id for s in merged.sessions} - {s.id for s in local.sessions}
        ),
        messages_added=merged.message_count() - local.message_count(),
        sessions=len(merged.sessions),
    )
    logger.info(
        "[Import] merged %d new session(s), %d new message(s)",
        result.sessions_added, result.messages_added,
    )
    return result


def import_snapshot_file(store: LocalStore, path: str | Path) -> ImportResult:
    """Read a backup file and import it.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValidationError: If the file is not a valid snapshot.
    """
    filepath = Path(path).expanduser()
    if not filepath.exists():
        raise FileNotFoundError(f"Backup not found: {filepath}")
    return import_snapshot(store, filepath.read_text(encoding="utf-8"))


def list_backups(
    backup_dir: Optional[Path] = None,
) -> list[dict[str, Any]]:
    """List available backup files.

    Args:
        backup_dir: Directory to scan. Defaults to ~/.chatsync/backups.

    Returns:
        list[dict]: Backup metadata sorted newest first.
    """
    search_dir = backup_dir or Path(SYNC_HOME).expanduser() / "backups"
    if not search_dir.exists():
        return []

    backups = []
    for f in sorted(search_dir.glob(f"{BACKUP_PREFIX}*.json"), reverse=True):
        stat = f.stat()
        backups.append({
            "filepath": str(f),
            "filename": f.name,
            "size": stat.st_size,
            "created": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
        })

    return backups
