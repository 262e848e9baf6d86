import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from lanzza.consts import CHAT_DB_FILE_NAME, FALLBACK_CACHE_DIR_NAME
from lanzza.exceptions import StorageUnavailableError
from lanzza.models import ChatRecord, Snapshot

logger = logging.getLogger(__name__)


@runtime_checkable
class ChatBackend(Protocol):
    """
    Keyed read/replace storage for chat records and their snapshots.

    Implementations raise StorageError subclasses; they never return partial writes.
    """

    @property
    def name(self) -> str: ...

    def read_chat(self, id_or_url_id: str) -> ChatRecord | None: ...

    def write_chat(self, record: ChatRecord) -> None: ...

    def delete_chat(self, chat_id: str) -> None: ...

    def list_chats(self) -> list[ChatRecord]: ...

    def chat_ids(self) -> list[str]: ...

    def reserve_url_id(self, url_id: str) -> bool: ...

    def claim_chat_number(self, floor: int) -> int:
        """Advances the chat id counter past floor and returns the claimed number."""
        ...

    def read_snapshot(self, chat_id: str) -> Snapshot | None: ...

    def write_snapshot(self, chat_id: str, snapshot: Snapshot) -> None: ...

    def delete_snapshot(self, chat_id: str) -> None: ...


def open_fallback_backend(data_dir: Path) -> ChatBackend:
    from lanzza.chatstore.fallback_cache import FallbackCache, FileKeyValueStore

    return FallbackCache(FileKeyValueStore(data_dir / FALLBACK_CACHE_DIR_NAME))


def open_backend(data_dir: Path, persistence_enabled: bool = True) -> ChatBackend:
    """
    Selects the storage backend once for a session: the SQLite store when it can be
    opened, the flat fallback cache otherwise.
    """
    if not persistence_enabled:
        logger.info("Chat persistence disabled, using fallback cache in %s", data_dir)
        return open_fallback_backend(data_dir)

    from lanzza.chatstore.sqlite_backend import SQLiteChatBackend

    try:
        return SQLiteChatBackend(data_dir / CHAT_DB_FILE_NAME)
    except StorageUnavailableError as e:
        logger.error(
            "Chat persistence is unavailable, using fallback cache: %s",
            e.message,
            extra={"event": "storage.fallback_engaged"},
        )
        return open_fallback_backend(data_dir)
