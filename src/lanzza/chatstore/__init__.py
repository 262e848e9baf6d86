"""
Durable chat storage.

Provides:
- The ChatBackend interface and its one-time selection (SQLite or fallback cache)
- Message log operations (read, replace, ids, url ids, duplicate, fork, import)
- Snapshot operations (one workspace snapshot per chat)
"""

from .backend import ChatBackend, open_backend, open_fallback_backend
from .fallback_cache import FallbackCache, FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .message_log import (
    create_chat_from_messages,
    delete_chat,
    duplicate_chat,
    fork_chat,
    get_all_chats,
    get_messages,
    get_next_id,
    get_url_id,
    set_messages,
    update_chat_description,
    update_chat_metadata,
)
from .snapshots import delete_snapshot, get_snapshot, set_snapshot
from .sqlite_backend import SQLiteChatBackend

__all__ = [
    "ChatBackend",
    "open_backend",
    "open_fallback_backend",
    "FallbackCache",
    "FileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteChatBackend",
    "get_messages",
    "set_messages",
    "get_next_id",
    "get_url_id",
    "get_all_chats",
    "delete_chat",
    "duplicate_chat",
    "fork_chat",
    "create_chat_from_messages",
    "update_chat_description",
    "update_chat_metadata",
    "get_snapshot",
    "set_snapshot",
    "delete_snapshot",
]
