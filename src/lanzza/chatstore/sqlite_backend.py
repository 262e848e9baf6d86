import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any

from lanzza.exceptions import StorageError, StorageUnavailableError, StorageWriteError
from lanzza.models import Annotation, ChatMessage, ChatRecord, Snapshot
from lanzza.serialization import decode_record, to_json

logger = logging.getLogger(__name__)


class SQLiteChatBackend:
    """
    Structured chat store on an embedded SQLite database.

    One row per chat, one row per message ordered by message_index, and at most
    one snapshot row per chat. Every write replaces the chat wholesale inside a
    single transaction.
    """

    _db_path: Path

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        try:
            self._initialize_schema()
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailableError(f"Cannot open chat database at {db_path}: {e}") from e

    @property
    def name(self) -> str:
        return "sqlite"

    # ---------- Chats ----------

    def read_chat(self, id_or_url_id: str) -> ChatRecord | None:
        with self._reading() as conn:
            row = conn.execute(
                "SELECT id, url_id, description, timestamp, metadata_json FROM chats WHERE id = ?",
                (id_or_url_id,),
            ).fetchone()
            if row is None:
                row = conn.execute(
                    "SELECT id, url_id, description, timestamp, metadata_json FROM chats WHERE url_id = ?",
                    (id_or_url_id,),
                ).fetchone()
            if row is None:
                return None
            return self._record_from_row(conn, row)

    def write_chat(self, record: ChatRecord) -> None:
        with self._writing() as conn:
            conn.execute(
                """
                INSERT INTO chats (id, url_id, description, timestamp, metadata_json)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id)
                DO UPDATE SET
                    url_id=excluded.url_id,
                    description=excluded.description,
                    timestamp=excluded.timestamp,
                    metadata_json=excluded.metadata_json
                """,
                (
                    record.id,
                    record.url_id,
                    record.description,
                    record.timestamp,
                    _encode_optional(record.metadata),
                ),
            )
            if record.url_id:
                conn.execute(
                    """
                    INSERT INTO url_ids (url_id, chat_id) VALUES (?, ?)
                    ON CONFLICT(url_id) DO UPDATE SET chat_id=excluded.chat_id
                    """,
                    (record.url_id, record.id),
                )
            conn.execute("DELETE FROM messages WHERE chat_id = ?", (record.id,))
            conn.executemany(
                """
                INSERT INTO messages (chat_id, message_index, message_id, role, content, annotations_json)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        record.id,
                        index,
                        message.id,
                        message.role,
                        message.content,
                        to_json(message.annotations).decode("utf-8"),
                    )
                    for index, message in enumerate(record.messages)
                ],
            )

    def delete_chat(self, chat_id: str) -> None:
        with self._writing() as conn:
            conn.execute("DELETE FROM messages WHERE chat_id = ?", (chat_id,))
            conn.execute("DELETE FROM snapshots WHERE chat_id = ?", (chat_id,))
            conn.execute("DELETE FROM url_ids WHERE chat_id = ?", (chat_id,))
            conn.execute("DELETE FROM chats WHERE id = ?", (chat_id,))

    def list_chats(self) -> list[ChatRecord]:
        with self._reading() as conn:
            rows = conn.execute(
                "SELECT id, url_id, description, timestamp, metadata_json FROM chats ORDER BY timestamp DESC"
            ).fetchall()
            return [self._record_from_row(conn, row) for row in rows]

    def chat_ids(self) -> list[str]:
        with self._reading() as conn:
            return [str(row["id"]) for row in conn.execute("SELECT id FROM chats").fetchall()]

    def reserve_url_id(self, url_id: str) -> bool:
        """Claims url_id for a chat not written yet; False when already claimed."""
        with self._writing() as conn:
            cursor = conn.execute("INSERT OR IGNORE INTO url_ids (url_id) VALUES (?)", (url_id,))
            return cursor.rowcount == 1

    def claim_chat_number(self, floor: int) -> int:
        with self._writing() as conn:
            rows = conn.execute(
                """
                INSERT INTO sequences (name, value) VALUES ('chat_id', :floor + 1)
                ON CONFLICT(name) DO UPDATE SET value = MAX(value, :floor) + 1
                RETURNING value
                """,
                {"floor": floor},
            ).fetchall()
            return int(rows[0]["value"])

    # ---------- Snapshots ----------

    def read_snapshot(self, chat_id: str) -> Snapshot | None:
        with self._reading() as conn:
            row = conn.execute("SELECT snapshot_json FROM snapshots WHERE chat_id = ?", (chat_id,)).fetchone()
        if row is None:
            return None
        return decode_record(Snapshot, str(row["snapshot_json"]), f"snapshot:{chat_id}")

    def write_snapshot(self, chat_id: str, snapshot: Snapshot) -> None:
        with self._writing() as conn:
            conn.execute(
                """
                INSERT INTO snapshots (chat_id, snapshot_json) VALUES (?, ?)
                ON CONFLICT(chat_id) DO UPDATE SET snapshot_json=excluded.snapshot_json
                """,
                (chat_id, to_json(snapshot).decode("utf-8")),
            )

    def delete_snapshot(self, chat_id: str) -> None:
        with self._writing() as conn:
            conn.execute("DELETE FROM snapshots WHERE chat_id = ?", (chat_id,))

    # ---------- Internal ----------

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _reading(self) -> Iterator[sqlite3.Connection]:
        try:
            with closing(self._connect()) as conn:
                yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Chat database read failed: {e}") from e

    @contextmanager
    def _writing(self) -> Iterator[sqlite3.Connection]:
        try:
            with closing(self._connect()) as conn, conn:
                yield conn
        except sqlite3.Error as e:
            raise StorageWriteError(f"Chat database write failed: {e}") from e

    def _initialize_schema(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn, conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chats (
                    id TEXT PRIMARY KEY,
                    url_id TEXT UNIQUE,
                    description TEXT,
                    timestamp TEXT NOT NULL,
                    metadata_json TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    chat_id TEXT NOT NULL,
                    message_index INTEGER NOT NULL,
                    message_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    annotations_json TEXT NOT NULL,
                    PRIMARY KEY (chat_id, message_index)
                )
                """
            )
            # Superset of chats.url_id: also holds ids handed out before their chat is first written.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS url_ids (
                    url_id TEXT PRIMARY KEY,
                    chat_id TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS snapshots (
                    chat_id TEXT PRIMARY KEY,
                    snapshot_json TEXT NOT NULL
                )
                """
            )
            # Ids handed out so far; deleting a chat never lowers them.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sequences (
                    name TEXT PRIMARY KEY,
                    value INTEGER NOT NULL
                )
                """
            )

    def _record_from_row(self, conn: sqlite3.Connection, row: sqlite3.Row) -> ChatRecord:
        chat_id = str(row["id"])
        message_rows = conn.execute(
            """
            SELECT message_id, role, content, annotations_json
            FROM messages
            WHERE chat_id = ?
            ORDER BY message_index ASC
            """,
            (chat_id,),
        ).fetchall()
        messages = [
            ChatMessage(
                id=str(m["message_id"]),
                role=m["role"],
                content=str(m["content"]),
                annotations=decode_record(list[Annotation], str(m["annotations_json"]), f"chat:{chat_id}"),
            )
            for m in message_rows
        ]
        metadata_json = row["metadata_json"]
        metadata = (
            decode_record(dict[str, Any], str(metadata_json), f"chat:{chat_id}") if metadata_json is not None else None
        )
        return ChatRecord(
            id=chat_id,
            messages=messages,
            url_id=row["url_id"],
            description=row["description"],
            timestamp=str(row["timestamp"]),
            metadata=metadata,
        )


def _encode_optional(value: object | None) -> str | None:
    if value is None:
        return None
    return to_json(value).decode("utf-8")
