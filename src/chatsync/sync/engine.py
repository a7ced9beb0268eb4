"""
Sync Engine -- drives one pull -> merge -> push cycle.

    idle -> fetching -> merging -> pushing -> idle
    any failure  -> failed -> idle, error raised to the caller

Sync is always a bidirectional merge: the remote snapshot is merged
into the local one, the result is persisted locally, then pushed back.
Nothing is retried here; the caller decides whether to sync again.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, Union

from .. import SYNC_HOME
from ..errors import SyncCancelledError, SyncInProgressError
from ..store import LocalStore, parse_document, serialize_document
from .backends import RemoteAdapter, create_adapter, resolve_identity
from .merge import merge_documents
from .models import SyncConfig, SyncPhase, SyncResult

if TYPE_CHECKING:
    from ..backup import ImportResult
    from ..config import ConfigStore

logger = logging.getLogger("chatsync.sync.engine")

PhaseListener = Callable[[SyncPhase], None]
AdapterFactory = Callable[[SyncConfig], RemoteAdapter]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """Orchestrates state synchronization against one remote.

    Owns the in-memory Document for the duration of a cycle and holds a
    non-blocking lock so two cycles never interleave.
    """

    def __init__(
        self,
        home: Optional[Path] = None,
        config_store: Optional["ConfigStore"] = None,
        store: Optional[LocalStore] = None,
        adapter_factory: AdapterFactory = create_adapter,
        listener: Optional[PhaseListener] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the sync engine.

        Loading the config here runs its migrations before any cycle.

        Args:
            home: Sync home directory. Defaults to ~/.chatsync.
            config_store: Where SyncConfig lives. Defaults to <home>/config.yaml.
            store: Local Document store. Defaults to <home>/state.json.
            adapter_factory: Builds the RemoteAdapter for a config.
            listener: Called with each phase transition.
            clock: Source of sync timestamps.
        """
        self.home = Path(home or SYNC_HOME).expanduser()
        if config_store is None:
            from ..config import ConfigStore

            config_store = ConfigStore(self.home)
        self.config_store = config_store
        self.store = store or LocalStore(self.home)
        self.config = self.config_store.load()

        self._adapter_factory = adapter_factory
        self._listener = listener
        self._clock = clock
        self._lock = threading.Lock()
        self._phase = SyncPhase.IDLE

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _set_phase(self, phase: SyncPhase) -> None:
        self._phase = phase
        logger.debug("Sync phase: %s", phase.value)
        if self._listener is not None:
            self._listener(phase)

    @staticmethod
    def _check_cancel(cancel: Optional[threading.Event], stage: str) -> None:
        if cancel is not None and cancel.is_set():
            raise SyncCancelledError(f"Sync cancelled {stage}")

    @contextmanager
    def _exclusive(self, action: str) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError(
                f"Cannot {action}: a sync cycle is already in progress"
            )
        try:
            yield
        finally:
            self._lock.release()

    def get_adapter(self) -> RemoteAdapter:
        return self._adapter_factory(self.config)

    def save_config(self) -> None:
        """Persist the current SyncConfig."""
        self.config_store.save(self.config)

    def sync(self, cancel: Optional[threading.Event] = None) -> SyncResult:
        """Run one full sync cycle.

        Args:
            cancel: Set it to abort the cycle at the next phase boundary.

        Returns:
            SyncResult describing the merged state.

        Raises:
            SyncInProgressError: If another cycle is running.
            SyncCancelledError: If ``cancel`` was set.
            NetworkError, AuthError, ValidationError: From fetch, parse, or push.
        """
        with self._exclusive("sync"):
            try:
                return self._run_cycle(cancel)
            except Exception as exc:
                self._set_phase(SyncPhase.FAILED)
                logger.error("[Sync] failed: %s", exc)
                raise
            finally:
                self._set_phase(SyncPhase.IDLE)

    def import_snapshot(self, raw: str) -> "ImportResult":
        """Merge a serialized snapshot into local state.

        Shares the cycle lock, so an import never interleaves with a sync.

        Raises:
            SyncInProgressError: If a sync cycle is running.
            ValidationError: If ``raw`` is not a valid snapshot.
        """
        from ..backup import import_snapshot

        with self._exclusive("import"):
            return import_snapshot(self.store, raw)

    def import_snapshot_file(self, path: Union[str, Path]) -> "ImportResult":
        """Read a backup file and merge it into local state.

        Raises:
            SyncInProgressError: If a sync cycle is running.
            FileNotFoundError: If the file does not exist.
            ValidationError: If the file is not a valid snapshot.
        """
        from ..backup import import_snapshot_file

        with self._exclusive("import"):
            return import_snapshot_file(self.store, path)

    def _run_cycle(self, cancel: Optional[threading.Event]) -> SyncResult:
        config = self.config
        provider = config.provider.value
        identity = resolve_identity(config)
        adapter = self.get_adapter()
        local = self.store.read()

        self._set_phase(SyncPhase.FETCHING)
        raw = adapter.fetch(identity)
        self._check_cancel(cancel, "after fetch")

        self._set_phase(SyncPhase.MERGING)
        remote_was_empty = not raw
        if remote_was_empty:
            logger.info("[Sync] Remote state is empty, using local state")
            merged = local
        else:
            remote = parse_document(raw, source=f"remote state from {provider}")
            merged = merge_documents(local, remote)
        self._check_cancel(cancel, "before saving merged state")
        self.store.write(merged)

        self._check_cancel(cancel, "before push")
        self._set_phase(SyncPhase.PUSHING)
        adapter.store(identity, serialize_document(merged))

        now = self._clock()
        merged.sync_meta.last_sync_time = now
        merged.sync_meta.last_provider = provider
        self.store.write(merged)
        config.mark_sync_time(now)
        self.save_config()

        result = SyncResult(
            provider=provider,
            identity=identity,
            remote_was_empty=remote_was_empty,
            sessions=len(merged.sessions),
            messages=merged.message_count(),
            sessions_added=len(
                {s.id for s in merged.sessions} - {s.id for s in local.sessions}
            ),
            messages_added=merged.message_count() - local.message_count(),
            synced_at=now,
        )
        logger.info(
            "[Sync] %s via %s: %d session(s), %d message(s) (+%d / +%d)",
            identity,
            provider,
            result.sessions,
            result.messages,
            result.sessions_added,
            result.messages_added,
        )
        return result

    def check(self) -> bool:
        """Connectivity diagnostic for the configured provider."""
        return self.get_adapter().probe()

    def status(self) -> dict[str, Any]:
        """Get current sync status.

        Returns:
            Dict with provider, readiness, and last-sync bookkeeping.
        """
        doc = self.store.read()
        return {
            "provider": self.config.provider.value,
            "identity": resolve_identity(self.config),
            "ready": self.config.cloud_sync_ready(),
            "proxy_enabled": self.config.proxy_enabled,
            "proxy_url": self.config.proxy_url,
            "last_sync_time": (
                self.config.last_sync_time.isoformat()
                if self.config.last_sync_time
                else None
            ),
            "last_provider": self.config.last_provider,
            "phase": self._phase.value,
            "sessions": len(doc.sessions),
            "messages": doc.message_count(),
        }
