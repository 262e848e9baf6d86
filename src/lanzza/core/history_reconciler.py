"""
Archived/active splitting of a chat's message log around a snapshot cursor and an
optional rewind target, and synthesis of the restore message pair.

Everything here is pure: no storage access and no workspace side effects.
"""

from collections.abc import Sequence

from msgspec import Struct

from lanzza.consts import (
    ACTION_TAG,
    ARTIFACT_TAG,
    HIDDEN_ANNOTATION,
    NO_STORE_ANNOTATION,
    RESTORE_ARTIFACT_ID,
    RESTORE_ARTIFACT_TITLE,
    RESTORE_FOLLOWUP,
    RESTORE_PROMPT,
)
from lanzza.models import (
    Annotation,
    ChatMessage,
    ChatSummaryAnnotation,
    FileEntry,
    RestoreMessage,
    Snapshot,
    WorkingMessage,
)
from lanzza.serialization import to_dict

from .project_commands import CommandDetector, FileContent, create_command_actions_string, detect_project_commands


class HistorySplit(Struct, frozen=True):
    archived: list[ChatMessage]
    active: list[WorkingMessage]
    starting_idx: int
    ending_idx: int
    snapshot_index: int

    @property
    def restored(self) -> bool:
        """True when the active list starts with a synthesized restore pair."""
        return self.starting_idx > 0


def _index_of(messages: Sequence[ChatMessage], message_id: str | None) -> int:
    if not message_id:
        return -1
    return next((i for i, m in enumerate(messages) if m.id == message_id), -1)


def compute_ending_index(messages: Sequence[ChatMessage], rewind_to: str | None) -> int:
    """
    Index just past the rewind target, or the full length when there is no
    (known) rewind target.
    """
    rewind_idx = _index_of(messages, rewind_to)
    if rewind_idx == -1:
        return len(messages)
    return rewind_idx + 1


def compute_starting_index(
    messages: Sequence[ChatMessage],
    snapshot_index: int,
    ending_idx: int,
    rewind_to: str | None,
) -> int:
    """
    Last archived index, or -1 when nothing is archived.

    Rewinding exactly onto the snapshot point forgets the snapshot and shows the
    raw history up to there.
    """
    starting_idx = -1
    if 0 <= snapshot_index < ending_idx:
        starting_idx = snapshot_index
    if snapshot_index > 0 and messages[snapshot_index].id == rewind_to:
        starting_idx = -1
    return starting_idx


def split_history(
    messages: Sequence[ChatMessage],
    snapshot: Snapshot | None,
    rewind_to: str | None = None,
) -> HistorySplit:
    """
    Splits the stored log into archived and active messages without synthesizing
    anything. A snapshot cursor that matches no message counts as no snapshot.
    """
    ending_idx = compute_ending_index(messages, rewind_to)
    snapshot_index = _index_of(messages, snapshot.cursor_message_id if snapshot else None)
    starting_idx = compute_starting_index(messages, snapshot_index, ending_idx, rewind_to)

    archived = list(messages[: starting_idx + 1]) if starting_idx >= 0 else []
    active: list[WorkingMessage] = list(messages[starting_idx + 1 : ending_idx])

    return HistorySplit(
        archived=archived,
        active=active,
        starting_idx=starting_idx,
        ending_idx=ending_idx,
        snapshot_index=snapshot_index,
    )


def text_files_of(snapshot: Snapshot) -> list[FileContent]:
    return [
        FileContent(path=path, content=entry.content)
        for path, entry in snapshot.files.items()
        if isinstance(entry, FileEntry) and not entry.is_binary
    ]


def build_restore_messages(
    snapshot: Snapshot,
    cursor_message_id: str,
    detector: CommandDetector = detect_project_commands,
) -> list[RestoreMessage]:
    """
    Builds the synthetic user/assistant pair standing in for the archived history.

    The assistant message writes every text file of the snapshot and runs the
    detected setup/start commands. Ids are derived from the cursor so repeated
    loads produce identical messages.
    """
    files = text_files_of(snapshot)
    command_actions = create_command_actions_string(detector(files))

    file_actions = "\n".join(
        f'<{ACTION_TAG} type="file" filePath="{f.path}">\n{f.content}\n</{ACTION_TAG}>' for f in files
    )
    content = (
        f"{RESTORE_FOLLOWUP}\n"
        + f'<{ARTIFACT_TAG} id="{RESTORE_ARTIFACT_ID}" title="{RESTORE_ARTIFACT_TITLE}" type="bundled">\n'
        + file_actions
        + command_actions
        + f"\n</{ARTIFACT_TAG}>"
    )

    assistant_annotations: list[Annotation] = [NO_STORE_ANNOTATION]
    if snapshot.summary:
        assistant_annotations.append(
            to_dict(ChatSummaryAnnotation(chat_id=cursor_message_id, summary=snapshot.summary))
        )

    return [
        RestoreMessage(
            id=f"restore-{cursor_message_id}",
            role="user",
            content=RESTORE_PROMPT,
            annotations=[NO_STORE_ANNOTATION, HIDDEN_ANNOTATION],
        ),
        RestoreMessage(
            id=cursor_message_id,
            role="assistant",
            content=content,
            annotations=assistant_annotations,
        ),
    ]


def reconcile_history(
    messages: Sequence[ChatMessage],
    snapshot: Snapshot | None,
    rewind_to: str | None = None,
    detector: CommandDetector = detect_project_commands,
) -> HistorySplit:
    """
    Splits the log and, when a snapshot point past the first message is in range,
    prepends the restore pair to the active messages.
    """
    split = split_history(messages, snapshot, rewind_to)
    if not split.restored or snapshot is None:
        return split

    cursor_id = messages[split.snapshot_index].id
    return HistorySplit(
        archived=split.archived,
        active=[*build_restore_messages(snapshot, cursor_id, detector), *split.active],
        starting_idx=split.starting_idx,
        ending_idx=split.ending_idx,
        snapshot_index=split.snapshot_index,
    )
