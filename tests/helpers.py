"""Builders and fakes shared by the chatsync tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from chatsync.models import Message, Session
from chatsync.sync.backends import RemoteAdapter

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def ts(seconds: float) -> datetime:
    """Fixed timestamp ``seconds`` after T0."""
    return T0 + timedelta(seconds=seconds)


def msg(msg_id: str, at: float, content: Optional[str] = None, role: str = "user") -> Message:
    return Message(id=msg_id, role=role, content=content or f"content of {msg_id}", created_at=ts(at))


def session(session_id: str, *messages: Message, modified: float = 0, topic: str = "") -> Session:
    return Session(id=session_id, topic=topic, messages=list(messages), last_modified=ts(modified))


class MemoryAdapter(RemoteAdapter):
    """In-memory remote for engine tests."""

    def __init__(self, blobs: Optional[dict[str, str]] = None, reachable: bool = True):
        self.blobs: dict[str, str] = dict(blobs or {})
        self.reachable = reachable
        self.calls: list[tuple[str, str]] = []
        self.fail_on: dict[str, Exception] = {}
        self.before_fetch = None

    @property
    def name(self) -> str:
        return "memory"

    def fetch(self, identity: str) -> Optional[str]:
        self.calls.append(("fetch", identity))
        if self.before_fetch is not None:
            self.before_fetch()
        if "fetch" in self.fail_on:
            raise self.fail_on["fetch"]
        return self.blobs.get(identity)

    def store(self, identity: str, blob: str) -> None:
        self.calls.append(("store", identity))
        if "store" in self.fail_on:
            raise self.fail_on["store"]
        self.blobs[identity] = blob

    def probe(self) -> bool:
        return self.reachable


