# pyright: standard

from pathlib import Path

from lanzza.chatstore import SQLiteChatBackend, set_messages, set_snapshot
from lanzza.consts import CHAT_DB_FILE_NAME
from lanzza.exceptions import StorageUnavailableError
from lanzza.models import Annotation, ChatMessage, ChatRecord, FileMap, Role, Snapshot


def make_message(
    message_id: str,
    role: Role = "user",
    content: str | None = None,
    annotations: list[Annotation] | None = None,
) -> ChatMessage:
    return ChatMessage(
        id=message_id,
        role=role,
        content=content if content is not None else f"content of {message_id}",
        annotations=annotations or [],
    )


def make_conversation(count: int, prefix: str = "m") -> list[ChatMessage]:
    """Alternating user/assistant messages with ids m0, m1, ..."""
    return [make_message(f"{prefix}{i}", "user" if i % 2 == 0 else "assistant") for i in range(count)]


def seed_chat(
    db: SQLiteChatBackend,
    chat_id: str,
    messages: list[ChatMessage],
    url_id: str | None = None,
    description: str | None = None,
    snapshot_cursor: str | None = None,
    snapshot_files: FileMap | None = None,
    summary: str | None = None,
) -> None:
    set_messages(db, chat_id, messages, url_id, description)
    if snapshot_cursor is not None:
        set_snapshot(
            db, chat_id, Snapshot(cursor_message_id=snapshot_cursor, files=snapshot_files or {}, summary=summary)
        )


def open_cli_db(data_dir: Path) -> SQLiteChatBackend:
    return SQLiteChatBackend(data_dir / CHAT_DB_FILE_NAME)


class RecordingNotifier:
    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class RecordingNavigator:
    def __init__(self) -> None:
        self.replaced: list[str] = []
        self.navigated: list[str] = []

    def navigate(self, chat_ref: str) -> None:
        self.navigated.append(chat_ref)

    def replace(self, chat_ref: str) -> None:
        self.replaced.append(chat_ref)


class RecordingSleep:
    """Async sleep stand-in that records requested delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class UnavailableBackend:
    """A primary store that cannot be reached at all."""

    def __init__(self) -> None:
        self.calls = 0

    @property
    def name(self) -> str:
        return "unavailable"

    def _fail(self) -> StorageUnavailableError:
        self.calls += 1
        return StorageUnavailableError("database is locked")

    def read_chat(self, id_or_url_id: str) -> ChatRecord | None:
        raise self._fail()

    def write_chat(self, record: ChatRecord) -> None:
        raise self._fail()

    def delete_chat(self, chat_id: str) -> None:
        raise self._fail()

    def list_chats(self) -> list[ChatRecord]:
        raise self._fail()

    def chat_ids(self) -> list[str]:
        raise self._fail()

    def reserve_url_id(self, url_id: str) -> bool:
        raise self._fail()

    def claim_chat_number(self, floor: int) -> int:
        raise self._fail()

    def read_snapshot(self, chat_id: str) -> Snapshot | None:
        raise self._fail()

    def write_snapshot(self, chat_id: str, snapshot: Snapshot) -> None:
        raise self._fail()

    def delete_snapshot(self, chat_id: str) -> None:
        raise self._fail()
