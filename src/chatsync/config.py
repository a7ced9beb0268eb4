"""
Sync configuration store -- load, migrate, save.

The config is a plain SyncConfig value persisted as YAML. Loading runs
every migration step newer than the stored ``schema_version``, in
order, before anything else sees the data. A step that blows up aborts
the load instead of silently dropping user settings.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from . import STORAGE_KEY, SYNC_HOME
from .errors import MigrationError
from .sync.models import SCHEMA_VERSION, SyncConfig

logger = logging.getLogger("chatsync.config")

CONFIG_FILENAME = "config.yaml"
LEGACY_PROXY_PATH = "/api/cors/"

Migration = Callable[[dict[str, Any]], dict[str, Any]]


def _reset_upstash_username(data: dict[str, Any]) -> dict[str, Any]:
    data.setdefault("upstash", {})["username"] = STORAGE_KEY
    return data


def _clear_legacy_proxy(data: dict[str, Any]) -> dict[str, Any]:
    for key in ("proxyUrl", "proxy_url"):
        if data.get(key) == LEGACY_PROXY_PATH:
            data[key] = ""
    return data


_RENAMES = {
    "useProxy": "proxy_enabled",
    "proxyUrl": "proxy_url",
    "lastSyncTime": "last_sync_time",
    "lastProvider": "last_provider",
}


def _snake_case_keys(data: dict[str, Any]) -> dict[str, Any]:
    for old, new in _RENAMES.items():
        if old in data:
            value = data.pop(old)
            data.setdefault(new, value)
    upstash = data.get("upstash")
    if isinstance(upstash, dict) and "apiKey" in upstash:
        upstash.setdefault("api_key", upstash.pop("apiKey"))
    # Legacy stores used 0 for "never synced".
    if data.get("last_sync_time") in (0, "0", ""):
        data["last_sync_time"] = None
    return data


MIGRATIONS: list[tuple[float, Migration]] = [
    (1.1, _reset_upstash_username),
    (1.2, _clear_legacy_proxy),
    (1.3, _snake_case_keys),
]


def migrate(data: dict[str, Any]) -> dict[str, Any]:
    """Apply every step newer than the stored version.

    Args:
        data: Raw persisted config. Modified in place.

    Returns:
        The migrated data with ``schema_version`` set to the latest.

    Raises:
        MigrationError: If a step raises.
    """
    legacy_version = data.pop("version", 0)
    stored = float(data.get("schema_version", legacy_version) or 0)
    for version, step in MIGRATIONS:
        if stored < version:
            try:
                data = step(data)
            except Exception as exc:
                raise MigrationError(
                    f"Config migration to {version} failed: {exc}", version=version
                ) from exc
            logger.info("Config migrated to schema %s", version)
    data["schema_version"] = max(stored, SCHEMA_VERSION)
    return data


class ConfigStore:
    """Persisted SyncConfig with a load/migrate/save lifecycle.

    Args:
        home: Sync home directory. Defaults to ~/.chatsync.
    """

    def __init__(self, home: Optional[Path] = None):
        self.home = Path(home or SYNC_HOME).expanduser()
        self.path = self.home / CONFIG_FILENAME

    def load(self) -> SyncConfig:
        """Read, migrate, and validate the config.

        A missing file yields defaults, which are saved immediately.

        Raises:
            MigrationError: If the file is unreadable or a step fails.
        """
        if not self.path.exists():
            config = SyncConfig()
            self.save(config)
            return config

        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise MigrationError(f"Unreadable sync config: {exc}") from exc
        if not isinstance(data, dict):
            raise MigrationError("Sync config is not a mapping")

        before = data.get("schema_version")
        data = migrate(data)
        try:
            config = SyncConfig(**data)
        except PydanticValidationError as exc:
            raise MigrationError(f"Invalid sync config: {exc}") from exc

        if before != config.schema_version:
            self.save(config)
        return config

    def save(self, config: SyncConfig) -> None:
        self.home.mkdir(parents=True, exist_ok=True)
        data = config.model_dump(mode="json")
        self.path.write_text(
            yaml.dump(data, default_flow_style=False), encoding="utf-8"
        )
