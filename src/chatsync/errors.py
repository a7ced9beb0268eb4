"""
Error taxonomy for the sync engine.

Transport and deserialization are the only places that fail. The
merge itself is total over well-formed documents, so nothing here is
raised from it.
"""

from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for all chatsync failures."""


class NetworkError(SyncError):
    """Transport or connectivity failure. Retry by syncing again."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(SyncError):
    """The remote rejected the configured credentials."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(SyncError):
    """A payload does not conform to the Document schema.

    Raised for malformed backup files and unparseable remote blobs.
    Local state is never touched when this is raised.
    """


class MigrationError(SyncError):
    """A config migration step failed; the stored config is left as-is."""

    def __init__(self, message: str, version: Optional[float] = None):
        super().__init__(message)
        self.version = version


class SyncInProgressError(SyncError):
    """Another sync cycle already holds the engine."""


class SyncCancelledError(SyncError):
    """The caller aborted the cycle before it completed."""
