"""
Remote adapters -- where the state document travels.

Each adapter is a stateless transport over one string key (the
identity). The engine never sees HTTP; it calls fetch/store/probe.

WebDAV: one opaque JSON blob per identity, Basic auth.
Upstash: REST key-value store, the blob split into 1 MiB chunks.
Local: a plain directory. For USB drives, NAS mounts, and tests.

With the proxy enabled, HTTP adapters talk to
``<proxy_url>/api/<provider>/<path>?endpoint=<endpoint>`` instead of the
endpoint itself. Headers and bodies are unchanged.
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

import requests

from .. import STORAGE_KEY
from ..errors import AuthError, NetworkError, ValidationError
from .models import (
    LocalConfig,
    ProviderType,
    SyncConfig,
    UpstashConfig,
    WebDAVConfig,
)

logger = logging.getLogger("chatsync.sync.backends")

DEFAULT_TIMEOUT = 30
UPSTASH_CHUNK_SIZE = 1024 * 1024


class RemoteAdapter(ABC):
    """Abstract remote backend addressed by a single string key."""

    @abstractmethod
    def fetch(self, identity: str) -> Optional[str]:
        """Return the blob stored under ``identity``.

        Returns:
            The blob, or None if nothing was ever written.

        Raises:
            NetworkError: On transport failure.
            AuthError: If credentials are rejected.
        """

    @abstractmethod
    def store(self, identity: str, blob: str) -> None:
        """Overwrite the blob stored under ``identity``.

        Raises:
            NetworkError: On transport failure.
            AuthError: If credentials are rejected.
        """

    @abstractmethod
    def probe(self) -> bool:
        """Cheap reachability and credential check. Never writes."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""


class Transport:
    """HTTP access to one endpoint, optionally routed through a proxy.

    Args:
        provider: Provider name, used in the proxy path.
        endpoint: The backend's base URL.
        proxy_url: Intermediary base URL, or None for direct access.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        provider: str,
        endpoint: str,
        proxy_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.provider = provider
        self.endpoint = endpoint
        self.proxy_url = proxy_url or None
        self.timeout = timeout

    def url(self, path: str) -> tuple[str, dict[str, str]]:
        """Resolve ``path`` to a request URL and query parameters."""
        path = path.lstrip("/")
        if self.proxy_url:
            base = self.proxy_url.rstrip("/")
            return f"{base}/api/{self.provider}/{path}", {"endpoint": self.endpoint}
        return f"{self.endpoint.rstrip('/')}/{path}", {}

    def request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send a request, mapping transport failures to sync errors.

        Raises:
            NetworkError: On connection failure or timeout.
            AuthError: On HTTP 401 or 403.
        """
        url, params = self.url(path)
        try:
            resp = requests.request(
                method, url, params=params or None, timeout=self.timeout, **kwargs
            )
        except requests.Timeout as exc:
            raise NetworkError(f"{self.provider} {method} {path} timed out") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"{self.provider} {method} {path} failed: {exc}") from exc

        if resp.status_code in (401, 403):
            raise AuthError(
                f"{self.provider} rejected credentials ({resp.status_code})",
                status_code=resp.status_code,
            )
        return resp

    def check(self, resp: requests.Response, method: str, path: str) -> None:
        """Raise NetworkError for any non-2xx response."""
        if resp.status_code >= 300:
            raise NetworkError(
                f"{self.provider} {method} {path} failed: {resp.status_code}",
                status_code=resp.status_code,
            )


class WebDAVAdapter(RemoteAdapter):
    """One JSON file per identity inside a ``chatsync/`` collection."""

    folder = STORAGE_KEY
    PROBE_OK = (200, 207, 301, 302, 307, 308, 404, 405)

    def __init__(self, config: WebDAVConfig, transport: Transport):
        self.config = config
        self.transport = transport
        self._folder_ready = False

    @property
    def name(self) -> str:
        return "webdav"

    def _auth(self) -> tuple[str, str]:
        return (self.config.username, self.config.password)

    def _path(self, identity: str) -> str:
        return f"{self.folder}/{quote(identity, safe='')}.json"

    def fetch(self, identity: str) -> Optional[str]:
        path = self._path(identity)
        resp = self.transport.request("GET", path, auth=self._auth())
        if resp.status_code == 404:
            logger.info("No remote state at %s", path)
            return None
        self.transport.check(resp, "GET", path)
        return resp.text or None

    def _ensure_folder(self) -> None:
        if self._folder_ready:
            return
        resp = self.transport.request("MKCOL", f"{self.folder}/", auth=self._auth())
        # 405: collection already exists.
        if resp.status_code not in (200, 201, 301, 302, 307, 308, 405):
            self.transport.check(resp, "MKCOL", self.folder)
        self._folder_ready = True

    def store(self, identity: str, blob: str) -> None:
        self._ensure_folder()
        path = self._path(identity)
        resp = self.transport.request(
            "PUT",
            path,
            auth=self._auth(),
            data=blob.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
        self.transport.check(resp, "PUT", path)
        logger.info("State pushed to WebDAV: %s (%d bytes)", path, len(blob))

    def probe(self) -> bool:
        try:
            resp = self.transport.request(
                "PROPFIND", f"{self.folder}/", auth=self._auth(), headers={"Depth": "0"}
            )
        except (NetworkError, AuthError) as exc:
            logger.warning("WebDAV probe failed: %s", exc)
            return False
        return resp.status_code in self.PROBE_OK


class UpstashAdapter(RemoteAdapter):
    """Upstash REST store. Large blobs are split across chunk keys.

    Each push writes its chunks under a fresh generation,
    ``<K>-chunk-<gen>-<i>``, and only then points ``<K>-chunk-count``
    at ``<gen>:<count>``. Readers follow the pointer, so an interrupted
    push leaves the previous blob intact. A bare integer pointer is the
    older ungenerated layout, ``<K>-chunk-<i>``, and is still read.
    """

    def __init__(
        self,
        config: UpstashConfig,
        transport: Transport,
        chunk_size: int = UPSTASH_CHUNK_SIZE,
    ):
        self.config = config
        self.transport = transport
        self.chunk_size = chunk_size

    @property
    def name(self) -> str:
        return "upstash"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_key}"}

    @staticmethod
    def chunk_count_key(identity: str) -> str:
        return f"{identity}-chunk-count"

    @staticmethod
    def chunk_key(identity: str, index: int, generation: Optional[str] = None) -> str:
        if generation is None:
            return f"{identity}-chunk-{index}"
        return f"{identity}-chunk-{generation}-{index}"

    @staticmethod
    def parse_pointer(raw: Any) -> tuple[Optional[str], int]:
        """Split a chunk-count value into (generation, count).

        Unreadable values count as zero chunks.
        """
        text = "" if raw is None else str(raw)
        generation: Optional[str] = None
        if ":" in text:
            generation, _, text = text.partition(":")
            generation = generation or None
        try:
            return generation, max(int(text), 0)
        except ValueError:
            return None, 0

    def _get(self, key: str) -> Any:
        path = f"get/{quote(key, safe='')}"
        resp = self.transport.request("GET", path, headers=self._headers())
        self.transport.check(resp, "GET", path)
        try:
            body = resp.json()
        except ValueError as exc:
            raise NetworkError(f"upstash returned a non-JSON body for {key}") from exc
        if not isinstance(body, dict):
            raise NetworkError(f"upstash returned an unexpected body for {key}")
        return body.get("result")

    def _set(self, key: str, value: str) -> None:
        path = f"set/{quote(key, safe='')}"
        resp = self.transport.request(
            "POST", path, headers=self._headers(), data=value.encode("utf-8")
        )
        self.transport.check(resp, "POST", path)

    def _delete(self, keys: list[str]) -> None:
        if not keys:
            return
        path = "del/" + "/".join(quote(k, safe="") for k in keys)
        resp = self.transport.request("POST", path, headers=self._headers())
        self.transport.check(resp, "POST", path)

    def fetch(self, identity: str) -> Optional[str]:
        generation, count = self.parse_pointer(
            self._get(self.chunk_count_key(identity))
        )
        if count == 0:
            logger.info("No remote state under %s", identity)
            return None

        chunks = []
        for index in range(count):
            chunk = self._get(self.chunk_key(identity, index, generation))
            if chunk is None:
                raise ValidationError(
                    f"remote state for {identity} is missing chunk {index} of {count}"
                )
            chunks.append(chunk)
        return "".join(chunks)

    def store(self, identity: str, blob: str) -> None:
        previous, previous_count = self.parse_pointer(
            self._get(self.chunk_count_key(identity))
        )
        generation = uuid.uuid4().hex[:12]
        chunks = [
            blob[i:i + self.chunk_size]
            for i in range(0, len(blob), self.chunk_size)
        ] or [""]
        for index, chunk in enumerate(chunks):
            self._set(self.chunk_key(identity, index, generation), chunk)
        self._set(self.chunk_count_key(identity), f"{generation}:{len(chunks)}")
        logger.info(
            "State pushed to Upstash: %s (%d chunk(s))", identity, len(chunks)
        )

        # The pointer already moved; stale chunks only cost space.
        stale = [
            self.chunk_key(identity, index, previous)
            for index in range(previous_count)
        ]
        try:
            self._delete(stale)
        except (NetworkError, AuthError) as exc:
            logger.warning("Could not remove %d stale chunk(s): %s", len(stale), exc)

    def probe(self) -> bool:
        try:
            self._get(self.chunk_count_key(self.config.username or STORAGE_KEY))
            return True
        except (NetworkError, AuthError) as exc:
            logger.warning("Upstash probe failed: %s", exc)
            return False


class LocalAdapter(RemoteAdapter):
    """Directory-backed store: ``<path>/<identity>.json``."""

    def __init__(self, config: LocalConfig):
        self.config = config
        self.target = Path(config.path).expanduser()

    @property
    def name(self) -> str:
        return "local"

    def _file(self, identity: str) -> Path:
        return self.target / f"{quote(identity, safe='')}.json"

    def fetch(self, identity: str) -> Optional[str]:
        path = self._file(identity)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8") or None
        except OSError as exc:
            raise NetworkError(f"Local read failed: {exc}") from exc

    def store(self, identity: str, blob: str) -> None:
        path = self._file(identity)
        try:
            self.target.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.target, suffix=".tmp")
        except OSError as exc:
            raise NetworkError(f"Local write failed: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp, path)
        except OSError as exc:
            Path(tmp).unlink(missing_ok=True)
            raise NetworkError(f"Local write failed: {exc}") from exc
        logger.info("State pushed to local: %s", path)

    def probe(self) -> bool:
        return self.target.is_dir() and os.access(self.target, os.W_OK)


def resolve_identity(config: SyncConfig) -> str:
    """Key under which the current provider's account is addressed.

    The configured username, verbatim. Falls back to the storage key
    when the username is empty.
    """
    return config.provider_config().username or STORAGE_KEY


def create_adapter(
    config: SyncConfig, timeout: float = DEFAULT_TIMEOUT
) -> RemoteAdapter:
    """Factory: build the adapter for ``config.provider``.

    Args:
        config: Sync configuration.
        timeout: Per-request timeout for HTTP adapters.

    Returns:
        Instantiated RemoteAdapter.

    Raises:
        ValueError: If the provider is not supported.
    """
    provider = config.provider
    if provider == ProviderType.LOCAL:
        return LocalAdapter(config.local)

    proxy = config.proxy_url if config.proxy_enabled else None
    if provider == ProviderType.WEBDAV:
        transport = Transport("webdav", config.webdav.endpoint, proxy, timeout)
        return WebDAVAdapter(config.webdav, transport)
    if provider == ProviderType.UPSTASH:
        transport = Transport("upstash", config.upstash.endpoint, proxy, timeout)
        return UpstashAdapter(config.upstash, transport)
    raise ValueError(f"Unsupported provider: {provider}")
