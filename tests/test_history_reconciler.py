# pyright: standard

from collections.abc import Sequence

from lanzza.core.history_reconciler import (
    build_restore_messages,
    compute_ending_index,
    reconcile_history,
    split_history,
)
from lanzza.core.project_commands import FileContent
from lanzza.models import FileEntry, FolderEntry, ProjectCommands, RestoreMessage, Snapshot
from tests.helpers import make_conversation

SNAPSHOT_FILES = {
    "/home/project/src": FolderEntry(),
    "/home/project/src/main.ts": FileEntry(content="console.log('hi')"),
    "/home/project/package.json": FileEntry(content='{"scripts": {"dev": "vite"}}'),
    "/home/project/logo.png": FileEntry(content="iVBORw0KGgo=", is_binary=True),
}


def test_rewind_onto_snapshot_cursor_shows_raw_history() -> None:
    # GIVEN a five-message chat with a snapshot taken at message 3
    messages = make_conversation(5)
    snapshot = Snapshot(cursor_message_id="m3", files=SNAPSHOT_FILES)

    # WHEN rewinding exactly onto the snapshot cursor
    split = reconcile_history(messages, snapshot, rewind_to="m3")

    # THEN the raw messages up to the cursor are active, with no restore pair
    assert split.active == messages[0:4]
    assert split.archived == []
    assert not split.restored


def test_snapshot_in_range_synthesizes_restore_pair() -> None:
    # GIVEN a five-message chat with a snapshot taken at message 2
    messages = make_conversation(5)
    snapshot = Snapshot(cursor_message_id="m2", files=SNAPSHOT_FILES)

    # WHEN loading without a rewind target
    split = reconcile_history(messages, snapshot)

    # THEN messages up to the cursor are archived
    assert split.archived == messages[0:3]
    # AND the active list is the restore pair followed by the remaining messages
    assert len(split.active) == 4
    user, assistant = split.active[0], split.active[1]
    assert isinstance(user, RestoreMessage) and user.role == "user"
    assert isinstance(assistant, RestoreMessage) and assistant.role == "assistant"
    assert split.active[2:] == messages[3:5]


def test_stale_snapshot_cursor_is_ignored() -> None:
    # GIVEN a snapshot whose cursor matches no stored message
    messages = make_conversation(4)
    snapshot = Snapshot(cursor_message_id="gone", files=SNAPSHOT_FILES)

    # WHEN reconciling
    split = reconcile_history(messages, snapshot)

    # THEN it behaves as if there were no snapshot
    assert split.active == messages
    assert split.archived == []
    assert split.snapshot_index == -1


def test_rewind_before_snapshot_point_ignores_snapshot() -> None:
    # GIVEN a snapshot at m3 and a rewind to m1
    messages = make_conversation(5)

    # WHEN splitting
    split = split_history(messages, Snapshot(cursor_message_id="m3"), rewind_to="m1")

    # THEN the snapshot lies beyond the visible range and is not used
    assert split.active == messages[0:2]
    assert split.archived == []


def test_rewind_after_snapshot_point_keeps_restore() -> None:
    messages = make_conversation(6)

    split = reconcile_history(messages, Snapshot(cursor_message_id="m1"), rewind_to="m3")

    assert split.archived == messages[0:2]
    assert [m.id for m in split.active] == ["restore-m1", "m1", "m2", "m3"]


def test_snapshot_at_first_message_archives_without_restore_pair() -> None:
    messages = make_conversation(3)

    split = reconcile_history(messages, Snapshot(cursor_message_id="m0"))

    assert split.archived == messages[0:1]
    assert split.active == messages[1:]
    assert not split.restored


def test_unknown_rewind_target_uses_full_history() -> None:
    messages = make_conversation(3)

    assert compute_ending_index(messages, "nope") == 3
    assert compute_ending_index(messages, None) == 3
    assert compute_ending_index(messages, "m0") == 1


def test_restore_messages_content_and_annotations() -> None:
    # GIVEN a snapshot with text, binary and folder entries and a summary
    snapshot = Snapshot(cursor_message_id="m2", files=SNAPSHOT_FILES, summary="A vite app")

    # WHEN building the restore pair
    user, assistant = build_restore_messages(snapshot, "m2")

    # THEN the user message is the hidden restore prompt
    assert user.id == "restore-m2"
    assert user.content == "Restore project from snapshot"
    assert user.annotations == ["no-store", "hidden"]

    # AND the assistant message reuses the cursor id and writes every text file
    assert assistant.id == "m2"
    assert '<boltAction type="file" filePath="/home/project/src/main.ts">' in assistant.content
    assert '<boltAction type="file" filePath="/home/project/package.json">' in assistant.content
    assert "logo.png" not in assistant.content
    # AND runs the detected commands
    assert '<boltAction type="shell">npm install</boltAction>' in assistant.content
    assert '<boltAction type="start">npm run dev</boltAction>' in assistant.content
    # AND carries the summary
    assert assistant.annotations == [
        "no-store",
        {"type": "chatSummary", "chatId": "m2", "summary": "A vite app"},
    ]


def test_restore_messages_use_injected_detector() -> None:
    # GIVEN a detector that records what it was given
    seen: list[str] = []

    def detector(files: Sequence[FileContent]) -> ProjectCommands:
        seen.extend(f.path for f in files)
        return ProjectCommands(type="Python", start_command="python app.py")

    # WHEN building restore messages
    _, assistant = build_restore_messages(Snapshot(files=SNAPSHOT_FILES), "m1", detector)

    # THEN only text files were inspected and its command is used
    assert sorted(seen) == ["/home/project/package.json", "/home/project/src/main.ts"]
    assert '<boltAction type="start">python app.py</boltAction>' in assistant.content
    assert assistant.annotations == ["no-store"]


def test_restore_messages_are_deterministic() -> None:
    snapshot = Snapshot(cursor_message_id="m2", files=SNAPSHOT_FILES)

    assert build_restore_messages(snapshot, "m2") == build_restore_messages(snapshot, "m2")
