# pyright: standard

from lanzza.models import (
    ChatRecord,
    FileEntry,
    FolderEntry,
    RestoreMessage,
    Snapshot,
    chat_summary_of,
    persistable_messages,
)
from lanzza.serialization import from_json, to_dict
from tests.helpers import make_message


def test_persistable_messages_drops_restore_and_no_store_messages_in_order() -> None:
    # GIVEN a working list mixing real, synthesized and no-store messages
    restore = RestoreMessage(id="restore-m1", role="user", content="Restore project from snapshot")
    messages = [
        restore,
        make_message("m0"),
        make_message("tmp", "assistant", annotations=["no-store"]),
        make_message("m1", "assistant"),
    ]

    # WHEN filtering for persistence
    kept = persistable_messages(messages)

    # THEN only the real messages remain, in their original order
    assert [m.id for m in kept] == ["m0", "m1"]


def test_restore_message_is_always_no_store_and_converts_to_wire_shape() -> None:
    # GIVEN a synthesized message without any annotations
    restore = RestoreMessage(id="m3", role="assistant", content="files")

    # THEN it is treated as no-store regardless of its annotations
    assert restore.is_no_store

    # AND it converts to a plain chat message with the same fields
    wire = restore.to_wire()
    assert (wire.id, wire.role, wire.content) == ("m3", "assistant", "files")


def test_chat_summary_of_reads_the_chat_summary_annotation() -> None:
    # GIVEN an assistant message carrying a chatSummary annotation among others
    message = make_message(
        "m1",
        "assistant",
        annotations=["hidden", {"type": "progress"}, {"type": "chatSummary", "summary": "A todo app", "chatId": "m1"}],
    )

    # WHEN / THEN the summary is found
    assert chat_summary_of(message) == "A todo app"
    # AND a message without one yields None
    assert chat_summary_of(make_message("m2")) is None


def test_chat_record_wire_format_uses_camel_case() -> None:
    # GIVEN a chat record with a url id
    record = ChatRecord(id="1", url_id="todo-app", messages=[make_message("m0")], timestamp="2026-01-01T00:00:00+00:00")

    # WHEN converting to builtins
    data = to_dict(record)

    # THEN field names use the camelCase wire names
    assert data["urlId"] == "todo-app"
    assert data["messages"][0]["id"] == "m0"


def test_snapshot_decodes_tagged_file_map() -> None:
    # GIVEN a stored snapshot as written by the workbench
    raw = """
    {
      "cursorMessageId": "m3",
      "summary": "Todo app",
      "files": {
        "/home/project/src": {"type": "folder"},
        "/home/project/src/app.ts": {"type": "file", "content": "export {}", "isBinary": false},
        "/home/project/logo.png": {"type": "file", "content": "iVBORw0KGgo=", "isBinary": true}
      }
    }
    """

    # WHEN decoding it
    snapshot = from_json(Snapshot, raw)

    # THEN folders and files are distinguished by their type tag
    assert snapshot.cursor_message_id == "m3"
    assert snapshot.files["/home/project/src"] == FolderEntry()
    assert snapshot.files["/home/project/src/app.ts"] == FileEntry(content="export {}")
    assert snapshot.files["/home/project/logo.png"] == FileEntry(content="iVBORw0KGgo=", is_binary=True)
