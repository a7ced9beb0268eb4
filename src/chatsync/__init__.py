"""
ChatSync — keep chat sessions and settings consistent across devices.

Every device holds its own copy of the state. A user-chosen remote
(WebDAV, Upstash, or a plain directory) carries the snapshot between
them. Each sync pulls, merges, and pushes; nothing is ever blindly
overwritten.
"""

import os

__version__ = "0.1.0"
__author__ = "chatsync contributors"

SYNC_HOME = os.environ.get("CHATSYNC_HOME", "~/.chatsync")

# Default remote key and WebDAV folder name.
STORAGE_KEY = "chatsync"
