"""
Pydantic models for the synchronized application state.

A Document is the whole unit that travels between devices: the chat
sessions, the settings map, and a little sync bookkeeping. Sessions and
messages are addressed by id, never by position.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, Field, model_validator


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so every comparison is well-defined."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class MessageRole(str, Enum):
    """Who authored a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """A single chat message. ``created_at`` never changes once set."""

    id: str = Field(default_factory=_new_id)
    role: MessageRole = MessageRole.USER
    content: str = ""
    created_at: UtcDatetime = Field(default_factory=utcnow)


class Session(BaseModel):
    """A conversation: an ordered run of messages under a stable id.

    Attributes:
        id: Globally unique, assigned at creation, never reused.
        topic: Display title.
        messages: Messages, kept in ``created_at`` order.
        last_modified: Bumped on every mutation, never goes backwards.
    """

    id: str = Field(default_factory=_new_id)
    topic: str = ""
    messages: list[Message] = Field(default_factory=list)
    last_modified: UtcDatetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _order_messages(self) -> "Session":
        seen: set[str] = set()
        for msg in self.messages:
            if msg.id in seen:
                raise ValueError(
                    f"duplicate message id {msg.id!r} in session {self.id!r}"
                )
            seen.add(msg.id)
        self.messages = sorted(self.messages, key=lambda m: m.created_at)
        return self

    def touch(self) -> None:
        """Advance ``last_modified``, strictly past its previous value."""
        now = utcnow()
        if now <= self.last_modified:
            now = self.last_modified + timedelta(microseconds=1)
        self.last_modified = now

    def add_message(self, role: MessageRole | str, content: str) -> Message:
        """Append a new message stamped with the current time."""
        created = utcnow()
        if self.messages and created < self.messages[-1].created_at:
            created = self.messages[-1].created_at
        msg = Message(role=MessageRole(role), content=content, created_at=created)
        self.messages.append(msg)
        self.touch()
        return msg


class SyncMeta(BaseModel):
    """Sync bookkeeping carried inside the Document.

    ``settings_updated_at`` is the modification marker for the settings
    map as a whole; settings carry no per-key timestamps.
    """

    last_sync_time: Optional[UtcDatetime] = None
    last_provider: str = ""
    settings_updated_at: Optional[UtcDatetime] = None


class Document(BaseModel):
    """The full synchronized state.

    Sessions are kept most-recently-modified first. Session ids are
    unique within a Document.
    """

    sessions: list[Session] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)
    sync_meta: SyncMeta = Field(default_factory=SyncMeta)

    @model_validator(mode="after")
    def _order_sessions(self) -> "Document":
        seen: set[str] = set()
        for session in self.sessions:
            if session.id in seen:
                raise ValueError(f"duplicate session id {session.id!r}")
            seen.add(session.id)
        self.sessions = sorted(
            self.sessions, key=lambda s: s.last_modified, reverse=True
        )
        return self

    def get_session(self, session_id: str) -> Optional[Session]:
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    def new_session(self, topic: str = "") -> Session:
        """Create an empty session at the top of the list."""
        session = Session(topic=topic)
        self.sessions.insert(0, session)
        return session

    def add_message(
        self, session_id: str, role: MessageRole | str, content: str
    ) -> Message:
        """Append a message to a session and move it to the top.

        Raises:
            KeyError: If no session has that id.
        """
        session = self.get_session(session_id)
        if session is None:
            raise KeyError(session_id)
        msg = session.add_message(role, content)
        self.sessions.remove(session)
        self.sessions.insert(0, session)
        return msg

    def set_setting(self, key: str, value: Any) -> None:
        self.settings[key] = value
        self.sync_meta.settings_updated_at = utcnow()

    def message_count(self) -> int:
        return sum(len(s.messages) for s in self.sessions)
