from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from msgspec import Struct, field

from lanzza.consts import CHAT_SUMMARY_ANNOTATION_TYPE, NO_STORE_ANNOTATION

type Role = Literal["user", "assistant", "system"]

# Plain string tags ("no-store", "hidden") or structured JSON markers.
type Annotation = str | dict[str, Any]

type ChatMetadata = dict[str, Any]


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ChatSummaryAnnotation(Struct, frozen=True, tag=CHAT_SUMMARY_ANNOTATION_TYPE, tag_field="type", rename="camel"):
    chat_id: str
    summary: str


class ChatMessage(Struct, frozen=True):
    """A message as it exists in the durable log."""

    id: str
    role: Role
    content: str
    annotations: list[Annotation] = field(default_factory=list)

    @property
    def is_no_store(self) -> bool:
        return NO_STORE_ANNOTATION in self.annotations


class RestoreMessage(Struct, frozen=True):
    """
    A message synthesized while restoring from a snapshot.

    Shares the wire shape of ChatMessage but is never written to durable storage
    and never takes part in archive splitting.
    """

    id: str
    role: Role
    content: str
    annotations: list[Annotation] = field(default_factory=list)

    @property
    def is_no_store(self) -> bool:
        return True

    def to_wire(self) -> ChatMessage:
        return ChatMessage(id=self.id, role=self.role, content=self.content, annotations=list(self.annotations))


type WorkingMessage = ChatMessage | RestoreMessage


def persistable_messages(messages: list[WorkingMessage]) -> list[ChatMessage]:
    """Drops synthesized messages and anything tagged no-store, preserving order."""
    kept: list[ChatMessage] = []
    for message in messages:
        match message:
            case RestoreMessage():
                continue
            case ChatMessage(is_no_store=True):
                continue
            case ChatMessage():
                kept.append(message)
    return kept


def chat_summary_of(message: WorkingMessage) -> str | None:
    """Returns the summary carried by the first chatSummary annotation, if any."""
    for annotation in message.annotations:
        match annotation:
            case {"type": "chatSummary", "summary": str(summary)}:
                return summary
            case _:
                pass
    return None


class FileEntry(Struct, frozen=True, tag="file", tag_field="type", rename="camel"):
    content: str
    is_binary: bool = False


class FolderEntry(Struct, frozen=True, tag="folder", tag_field="type"):
    pass


type FileMap = dict[str, FileEntry | FolderEntry]


class Snapshot(Struct, rename="camel"):
    """Workspace files captured after the message identified by cursor_message_id."""

    cursor_message_id: str = ""
    files: dict[str, FileEntry | FolderEntry] = field(default_factory=dict)
    summary: str | None = None


class ChatRecord(Struct, rename="camel"):
    id: str
    messages: list[ChatMessage] = field(default_factory=list)
    url_id: str | None = None
    description: str | None = None
    timestamp: str = field(default_factory=utc_now_iso)
    metadata: ChatMetadata | None = None


class ChatExport(Struct, rename="camel"):
    messages: list[ChatMessage]
    export_date: str
    description: str | None = None


class FirstArtifact(Struct, frozen=True):
    """The first artifact produced by the conversation, as reported by the workbench."""

    id: str
    title: str | None = None


class ProjectCommands(Struct, frozen=True):
    type: str
    setup_command: str | None = None
    start_command: str | None = None
    followup_message: str = ""
