"""
Sync data models -- configuration and results for the sync system.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .. import STORAGE_KEY

SCHEMA_VERSION = 1.3


class ProviderType(str, Enum):
    """Supported remote backends."""

    WEBDAV = "webdav"
    UPSTASH = "upstash"
    LOCAL = "local"


class SyncPhase(str, Enum):
    """Where a sync cycle currently is."""

    IDLE = "idle"
    FETCHING = "fetching"
    MERGING = "merging"
    PUSHING = "pushing"
    FAILED = "failed"


class WebDAVConfig(BaseModel):
    """WebDAV server and Basic-auth credentials."""

    endpoint: str = ""
    username: str = ""
    password: str = Field(default="", repr=False)


class UpstashConfig(BaseModel):
    """Upstash REST endpoint. ``username`` is the key the state lives under."""

    endpoint: str = ""
    username: str = STORAGE_KEY
    api_key: str = Field(default="", repr=False)


class LocalConfig(BaseModel):
    """Plain directory store, for USB drives, NAS mounts, and the like."""

    path: str = ""
    username: str = STORAGE_KEY


class SyncConfig(BaseModel):
    """Complete persisted sync configuration.

    Credential fields are opaque: they are handed to the adapter exactly
    as entered and are excluded from ``repr`` so they never reach a log.
    """

    provider: ProviderType = ProviderType.WEBDAV
    proxy_enabled: bool = False
    proxy_url: str = ""

    webdav: WebDAVConfig = Field(default_factory=WebDAVConfig)
    upstash: UpstashConfig = Field(default_factory=UpstashConfig)
    local: LocalConfig = Field(default_factory=LocalConfig)

    last_sync_time: Optional[datetime] = None
    last_provider: str = ""
    schema_version: float = SCHEMA_VERSION

    def provider_config(self) -> WebDAVConfig | UpstashConfig | LocalConfig:
        """Config block of the currently selected provider."""
        return getattr(self, self.provider.value)

    def cloud_sync_ready(self) -> bool:
        """True when every field of the current provider is filled in."""
        values = self.provider_config().model_dump().values()
        return all(len(str(v)) > 0 for v in values)

    def mark_sync_time(self, when: Optional[datetime] = None) -> None:
        self.last_sync_time = when or datetime.now(timezone.utc)
        self.last_provider = self.provider.value


class SyncResult(BaseModel):
    """Summary of one completed sync cycle."""

    provider: str
    identity: str
    remote_was_empty: bool = False
    sessions: int = 0
    messages: int = 0
    sessions_added: int = 0
    messages_added: int = 0
    synced_at: datetime
