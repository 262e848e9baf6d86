import logging
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote, unquote

from lanzza.exceptions import CorruptRecordError, StorageUnavailableError, StorageWriteError
from lanzza.lib.atomic_io import atomic_write_text
from lanzza.models import ChatRecord, Snapshot
from lanzza.serialization import decode_record, to_json

logger = logging.getLogger(__name__)

CHAT_KEY_PREFIX = "chat:"
URL_ID_KEY_PREFIX = "urlId:"
SNAPSHOT_KEY_PREFIX = "snapshot:"
NEXT_ID_KEY = "nextId"


@runtime_checkable
class KeyValueStore(Protocol):
    """String-keyed storage of serialized JSON blobs."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        _ = self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class FileKeyValueStore:
    """One file per key inside a directory; keys are percent-encoded into file names."""

    root: Path

    def __init__(self, root: Path) -> None:
        self.root = root
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot create fallback cache directory {root}: {e}") from e

    def get_item(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read fallback cache entry '{key}': {e}") from e

    def set_item(self, key: str, value: str) -> None:
        try:
            atomic_write_text(self._path_for(key), value)
        except OSError as e:
            raise StorageWriteError(f"Cannot write fallback cache entry '{key}': {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageWriteError(f"Cannot remove fallback cache entry '{key}': {e}") from e

    def keys(self) -> list[str]:
        return sorted(unquote(p.stem) for p in self.root.glob("*.json") if p.is_file())

    def _path_for(self, key: str) -> Path:
        return self.root / f"{quote(key, safe='')}.json"


class FallbackCache:
    """
    Degraded-mode chat backend over a flat key-value store.

    Layout:
      chat:<id>          -> {id, urlId, description, messages, timestamp, metadata}
      urlId:<urlId>      -> <id>
      snapshot:<id>      -> {cursorMessageId, files, summary}
      nextId             -> last chat number handed out
    """

    kv: KeyValueStore

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    @property
    def name(self) -> str:
        return "fallback"

    def read_chat(self, id_or_url_id: str) -> ChatRecord | None:
        raw = self.kv.get_item(CHAT_KEY_PREFIX + id_or_url_id)
        if raw is None:
            chat_id = self.kv.get_item(URL_ID_KEY_PREFIX + id_or_url_id)
            if not chat_id:
                return None
            raw = self.kv.get_item(CHAT_KEY_PREFIX + chat_id)
            if raw is None:
                return None
        record = decode_record(ChatRecord, raw, CHAT_KEY_PREFIX + id_or_url_id)
        logger.debug("Found chat %s in fallback cache: %d messages", record.id, len(record.messages))
        return record

    def write_chat(self, record: ChatRecord) -> None:
        previous = self._previous_url_id(record.id)
        if record.url_id:
            owner = self.kv.get_item(URL_ID_KEY_PREFIX + record.url_id)
            if owner and owner != record.id:
                raise StorageWriteError(f"urlId '{record.url_id}' already belongs to chat {owner}")
        self.kv.set_item(CHAT_KEY_PREFIX + record.id, to_json(record).decode("utf-8"))
        if record.url_id:
            self.kv.set_item(URL_ID_KEY_PREFIX + record.url_id, record.id)
        if previous and previous != record.url_id:
            self.kv.remove_item(URL_ID_KEY_PREFIX + previous)

    def delete_chat(self, chat_id: str) -> None:
        previous = self._previous_url_id(chat_id)
        self.kv.remove_item(CHAT_KEY_PREFIX + chat_id)
        self.kv.remove_item(SNAPSHOT_KEY_PREFIX + chat_id)
        if previous:
            self.kv.remove_item(URL_ID_KEY_PREFIX + previous)

    def list_chats(self) -> list[ChatRecord]:
        records: list[ChatRecord] = []
        for chat_id in self.chat_ids():
            raw = self.kv.get_item(CHAT_KEY_PREFIX + chat_id)
            if raw is not None:
                records.append(decode_record(ChatRecord, raw, CHAT_KEY_PREFIX + chat_id))
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    def chat_ids(self) -> list[str]:
        return [k.removeprefix(CHAT_KEY_PREFIX) for k in self.kv.keys() if k.startswith(CHAT_KEY_PREFIX)]

    def reserve_url_id(self, url_id: str) -> bool:
        key = URL_ID_KEY_PREFIX + url_id
        if self.kv.get_item(key) is not None:
            return False
        # An empty owner marks an id handed out before its chat is first written.
        self.kv.set_item(key, "")
        return True

    def claim_chat_number(self, floor: int) -> int:
        raw = self.kv.get_item(NEXT_ID_KEY)
        current = int(raw) if raw and raw.isdigit() else 0
        claimed = max(current, floor) + 1
        self.kv.set_item(NEXT_ID_KEY, str(claimed))
        return claimed

    def read_snapshot(self, chat_id: str) -> Snapshot | None:
        raw = self.kv.get_item(SNAPSHOT_KEY_PREFIX + chat_id)
        if raw is None:
            return None
        return decode_record(Snapshot, raw, SNAPSHOT_KEY_PREFIX + chat_id)

    def write_snapshot(self, chat_id: str, snapshot: Snapshot) -> None:
        self.kv.set_item(SNAPSHOT_KEY_PREFIX + chat_id, to_json(snapshot).decode("utf-8"))

    def delete_snapshot(self, chat_id: str) -> None:
        self.kv.remove_item(SNAPSHOT_KEY_PREFIX + chat_id)

    def _previous_url_id(self, chat_id: str) -> str | None:
        raw = self.kv.get_item(CHAT_KEY_PREFIX + chat_id)
        if raw is None:
            return None
        try:
            return decode_record(ChatRecord, raw, CHAT_KEY_PREFIX + chat_id).url_id
        except CorruptRecordError:
            logger.warning("Overwriting malformed fallback cache entry for chat %s", chat_id)
            return None
