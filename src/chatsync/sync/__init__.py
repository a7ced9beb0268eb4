"""
State sync -- keep one logical Document consistent across devices.

Every cycle pulls the remote snapshot, merges it with the local one,
saves the result, and pushes it back. Never a blind overwrite.

Backends: WebDAV, Upstash, local directory. Optionally proxied.
"""

from .engine import SyncEngine
from .merge import merge_documents

__all__ = ["SyncEngine", "merge_documents"]
