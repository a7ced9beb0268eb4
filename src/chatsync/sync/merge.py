"""
Merge engine -- reconcile two Document snapshots into one.

Pure and total: no I/O, no exceptions for well-formed input, and
neither argument is modified. The result is always a fresh Document.

    sessions  ->  union by id, messages unioned by id inside each
    messages  ->  same id, different content: later created_at wins,
                  a tie keeps base's copy
    settings  ->  whole map from the side with the newer marker
    sync_meta ->  base's; the engine stamps last_sync_time after push
"""

from __future__ import annotations

from datetime import datetime, timezone

from ..models import Document, Message, Session, SyncMeta

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def merge_messages(base: list[Message], incoming: list[Message]) -> list[Message]:
    """Union two message lists by id, ordered by ``created_at``."""
    by_id: dict[str, Message] = {m.id: m for m in base}
    for msg in incoming:
        current = by_id.get(msg.id)
        if current is None:
            by_id[msg.id] = msg
        elif msg != current and msg.created_at > current.created_at:
            by_id[msg.id] = msg
    return sorted(by_id.values(), key=lambda m: m.created_at)


def merge_sessions(base: Session, incoming: Session) -> Session:
    """Reconcile two copies of the same session.

    The topic follows whichever copy was modified last (base on a tie);
    ``last_modified`` becomes the later of the two.
    """
    newer = incoming if incoming.last_modified > base.last_modified else base
    return Session(
        id=base.id,
        topic=newer.topic,
        messages=merge_messages(base.messages, incoming.messages),
        last_modified=max(base.last_modified, incoming.last_modified),
    )


def _settings_marker(meta: SyncMeta) -> tuple[datetime, datetime]:
    return (
        meta.settings_updated_at or _EPOCH,
        meta.last_sync_time or _EPOCH,
    )


def merge_documents(base: Document, incoming: Document) -> Document:
    """Merge ``incoming`` into a copy of ``base``.

    Every session and message present on either side survives, except
    the losing copy of a message whose id exists on both sides with
    different content. ``merge_documents(d, d) == d``.

    Args:
        base: The local document.
        incoming: The remote (or imported) document.

    Returns:
        A new Document; the inputs are left untouched.
    """
    base = base.model_copy(deep=True)
    incoming = incoming.model_copy(deep=True)

    incoming_by_id = {s.id: s for s in incoming.sessions}
    sessions: list[Session] = []
    for session in base.sessions:
        other = incoming_by_id.pop(session.id, None)
        sessions.append(session if other is None else merge_sessions(session, other))
    sessions.extend(s for s in incoming.sessions if s.id in incoming_by_id)

    if _settings_marker(incoming.sync_meta) > _settings_marker(base.sync_meta):
        settings = incoming.settings
        settings_updated_at = incoming.sync_meta.settings_updated_at
    else:
        settings = base.settings
        settings_updated_at = base.sync_meta.settings_updated_at

    meta = base.sync_meta.model_copy(
        update={"settings_updated_at": settings_updated_at}
    )
    return Document(sessions=sessions, settings=settings, sync_meta=meta)
