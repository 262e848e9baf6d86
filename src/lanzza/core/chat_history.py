import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from lanzza.chatstore import (
    ChatBackend,
    create_chat_from_messages,
    duplicate_chat,
    get_messages,
    get_next_id,
    get_snapshot,
    get_url_id,
    set_messages,
    update_chat_metadata,
)
from lanzza.console import Notifier
from lanzza.exceptions import (
    CorruptRecordError,
    LanzzaError,
    SnapshotRestoreError,
    StorageError,
    StorageUnavailableError,
)
from lanzza.export import chat_to_export
from lanzza.lib.slugs import slugify
from lanzza.models import (
    ChatExport,
    ChatMessage,
    ChatMetadata,
    ChatRecord,
    FileMap,
    FirstArtifact,
    LoadState,
    Snapshot,
    WorkingMessage,
    chat_summary_of,
    persistable_messages,
)

from .history_reconciler import reconcile_history
from .project_commands import CommandDetector, detect_project_commands
from .retrying_loader import RetryingLoader, Sleep
from .workspace_sync import Workspace, restore_snapshot, take_snapshot

logger = logging.getLogger(__name__)


@runtime_checkable
class Navigator(Protocol):
    """Moves the caller's location to a chat."""

    def navigate(self, chat_ref: str) -> None: ...

    def replace(self, chat_ref: str) -> None:
        """Rewrites the location in place, without a full transition."""
        ...


class NullNavigator:
    def navigate(self, chat_ref: str) -> None:
        logger.debug("navigate -> /chat/%s", chat_ref)

    def replace(self, chat_ref: str) -> None:
        logger.debug("replace location -> /chat/%s", chat_ref)


class ChatHistory:
    """
    State of the chat that is currently open, and the operations on it.

    One instance per open chat session. load() re-enters the state machine for a
    new chat id; results of a load that is no longer current are discarded.
    Storage errors never escape the public operations: they are logged, reported
    through the notifier and turned into a safe state.
    """

    db: ChatBackend
    workspace: Workspace
    state: LoadState
    chat_id: str | None
    url_id: str | None
    description: str | None
    metadata: ChatMetadata | None
    archived_messages: list[ChatMessage]
    initial_messages: list[WorkingMessage]
    retries: int

    def __init__(
        self,
        db: ChatBackend,
        workspace: Workspace,
        notifier: Notifier,
        *,
        fallback: ChatBackend | None = None,
        navigator: Navigator | None = None,
        detector: CommandDetector = detect_project_commands,
        sleep: Sleep = asyncio.sleep,
        attempt_timeout: float | None = 10.0,
    ) -> None:
        self.db = db
        self.workspace = workspace
        self._fallback = fallback
        self._notifier = notifier
        self._navigator = navigator or NullNavigator()
        self._detector = detector
        self._sleep = sleep
        self._attempt_timeout = attempt_timeout
        self._requested_id: str | None = None
        self._reset()

    @property
    def ready(self) -> bool:
        return self._requested_id is None or self.state in (LoadState.READY, LoadState.ERROR)

    @property
    def using_fallback(self) -> bool:
        return self._fallback is not None and self.db is self._fallback

    def _reset(self) -> None:
        self.state = LoadState.IDLE
        self.chat_id = None
        self.url_id = None
        self.description = None
        self.metadata = None
        self.archived_messages = []
        self.initial_messages = []
        self.retries = 0

    # ---------- Load ----------

    async def load(self, mixed_id: str | None, rewind_to: str | None = None) -> list[WorkingMessage]:
        """
        Opens the chat identified by internal id or url id and returns the messages to
        show. A chat that never shows up settles as ready with an empty history.
        """
        self._requested_id = mixed_id
        self._reset()

        if mixed_id is None:
            self.state = LoadState.READY
            return []

        loader = RetryingLoader(
            self._fetch,
            sleep=self._sleep,
            attempt_timeout=self._attempt_timeout,
            on_state=lambda state: self._set_state_if_current(mixed_id, state),
            should_continue=lambda: self._requested_id == mixed_id,
        )

        try:
            outcome = await loader.load(mixed_id)
        except StorageUnavailableError as e:
            if self._requested_id == mixed_id and self._engage_fallback(e):
                return await self.load(mixed_id, rewind_to)
            return self._fail_load(mixed_id, e)
        except StorageError as e:
            return self._fail_load(mixed_id, e)

        if self._requested_id != mixed_id or outcome.abandoned:
            logger.debug("Discarding load result for %s, chat %s is now open", mixed_id, self._requested_id)
            return self.initial_messages

        self.retries = outcome.retries
        if outcome.record is None:
            self.state = LoadState.READY
            return []

        if not await self._apply_record(mixed_id, outcome.record, outcome.snapshot, rewind_to):
            logger.debug("Discarding restored state for %s, chat %s is now open", mixed_id, self._requested_id)
            return self.initial_messages
        self.state = LoadState.READY
        logger.info("Chat loaded successfully, %d messages, id: %s", len(self.initial_messages), mixed_id)
        return self.initial_messages

    async def _fetch(self, mixed_id: str) -> tuple[ChatRecord | None, Snapshot | None]:
        record, snapshot = await asyncio.gather(
            self._read(get_messages, mixed_id),
            self._read(get_snapshot, mixed_id),
        )
        # Snapshots are keyed by internal id; whatever sits under a url id is not this chat's.
        if record is not None and record.id != mixed_id:
            snapshot = await self._read(get_snapshot, record.id)
        return record, snapshot

    async def _read[T](self, read: Callable[[ChatBackend, str], T | None], key: str) -> T | None:
        try:
            return await asyncio.to_thread(read, self.db, key)
        except CorruptRecordError as e:
            logger.error("%s", e.message, extra={"event": "chat.load_failed"})
            if self._fallback is None or self.db is self._fallback:
                return None
            try:
                return await asyncio.to_thread(read, self._fallback, key)
            except StorageError as fallback_error:
                logger.error("Fallback read of %s failed: %s", key, fallback_error.message)
                return None

    async def _apply_record(
        self, mixed_id: str, record: ChatRecord, snapshot: Snapshot | None, rewind_to: str | None
    ) -> bool:
        """Adopts the loaded chat; False when another chat was opened while files were restored."""
        split = reconcile_history(record.messages, snapshot, rewind_to, self._detector)

        if split.restored and snapshot is not None:
            _ = await self.restore_snapshot(snapshot)
            if self._requested_id != mixed_id:
                return False

        self.archived_messages = split.archived
        self.initial_messages = split.active
        self.url_id = record.url_id
        self.description = record.description
        self.chat_id = record.id
        self.metadata = record.metadata
        return True

    def _fail_load(self, mixed_id: str, error: LanzzaError) -> list[WorkingMessage]:
        if self._requested_id != mixed_id:
            return self.initial_messages
        logger.error(
            "Failed to load chat messages or snapshot: %s",
            error.message,
            extra={"event": "chat.load_failed"},
        )
        self._notifier.error(f"Failed to load chat: {error.message}")
        self.state = LoadState.ERROR
        return []

    def _set_state_if_current(self, mixed_id: str, state: LoadState) -> None:
        if self._requested_id == mixed_id:
            self.state = state

    # ---------- Snapshots ----------

    async def take_snapshot(self, cursor_message_id: str, files: FileMap, summary: str | None = None) -> bool:
        if self.chat_id is None:
            return False
        try:
            _ = await asyncio.to_thread(take_snapshot, self.db, self.chat_id, cursor_message_id, files, summary)
        except StorageError as e:
            logger.error("Failed to save snapshot: %s", e.message, extra={"event": "snapshot.save_failed"})
            self._notifier.error("Failed to save chat snapshot.")
            return False
        return True

    async def restore_snapshot(self, snapshot: Snapshot) -> bool:
        """Applies the snapshot's files to the workspace; partial restores are reported, not rolled back."""
        if not snapshot.files:
            return True
        try:
            await asyncio.to_thread(restore_snapshot, self.workspace, snapshot.files)
        except SnapshotRestoreError as e:
            logger.error(
                "Snapshot restore incomplete: %s",
                ", ".join(e.failed_paths),
                extra={"event": "snapshot.restore_failed"},
            )
            self._notifier.error(e.message)
            return False
        return True

    # ---------- Store ----------

    async def store_message_history(
        self,
        messages: Sequence[WorkingMessage],
        first_artifact: FirstArtifact | None = None,
    ) -> bool:
        """
        Persists the archived messages followed by the given active messages and takes
        a workspace snapshot at the last one. Returns False when the write failed; the
        in-memory state is kept either way.
        """
        if not messages:
            return True

        to_store = persistable_messages(list(messages))
        if not to_store:
            return True

        try:
            return await self._store(to_store, first_artifact)
        except StorageUnavailableError as e:
            if self._engage_fallback(e):
                return await self.store_message_history(messages, first_artifact)
            return self._fail_store(e)
        except StorageError as e:
            return self._fail_store(e)

    async def _store(self, messages: list[ChatMessage], first_artifact: FirstArtifact | None) -> bool:
        if not self.url_id and first_artifact is not None and first_artifact.id:
            self.url_id = await asyncio.to_thread(get_url_id, self.db, slugify(first_artifact.id))
            # In-place rewrite: a full navigation would re-render the open chat.
            self._navigator.replace(self.url_id)

        last_message = messages[-1]
        chat_summary = chat_summary_of(last_message) if last_message.role == "assistant" else None

        if not self.description and first_artifact is not None and first_artifact.title:
            self.description = first_artifact.title

        if not self.initial_messages and self.chat_id is None:
            self.chat_id = await asyncio.to_thread(get_next_id, self.db)
            if not self.url_id:
                self._navigator.replace(self.chat_id)

        if self.chat_id is None:
            logger.error("Cannot save messages, chat ID is not set.", extra={"event": "chat.store_failed"})
            self._notifier.error("Failed to save chat messages: Chat ID missing.")
            return False

        files = await asyncio.to_thread(self.workspace.files)
        _ = await self.take_snapshot(last_message.id, files, chat_summary)

        await asyncio.to_thread(
            set_messages,
            self.db,
            self.chat_id,
            [*self.archived_messages, *messages],
            self.url_id,
            self.description,
            None,
            self.metadata,
        )
        return True

    def _fail_store(self, error: LanzzaError) -> bool:
        logger.error("Failed to save chat messages: %s", error.message, extra={"event": "chat.store_failed"})
        self._notifier.error(f"Failed to save chat messages: {error.message}")
        return False

    # ---------- Other operations ----------

    async def update_chat_metadata(self, metadata: ChatMetadata) -> bool:
        if self.chat_id is None:
            return False
        try:
            await asyncio.to_thread(update_chat_metadata, self.db, self.chat_id, metadata)
        except StorageError as e:
            logger.error("Failed to update chat metadata: %s", e.message, extra={"event": "chat.store_failed"})
            self._notifier.error("Failed to update chat metadata")
            return False
        self.metadata = metadata
        return True

    async def duplicate_current_chat(self, list_item_id: str | None = None) -> str | None:
        source_id = self._requested_id or list_item_id
        if source_id is None:
            return None
        try:
            new_id = await asyncio.to_thread(duplicate_chat, self.db, source_id)
        except StorageError as e:
            logger.error("Failed to duplicate chat %s: %s", source_id, e.message, extra={"event": "chat.store_failed"})
            self._notifier.error("Failed to duplicate chat")
            return None
        self._navigator.navigate(new_id)
        self._notifier.success("Chat duplicated successfully")
        return new_id

    async def import_chat(
        self,
        description: str,
        messages: Sequence[WorkingMessage],
        metadata: ChatMetadata | None = None,
    ) -> str | None:
        try:
            new_id = await asyncio.to_thread(
                create_chat_from_messages, self.db, description, persistable_messages(list(messages)), metadata
            )
        except StorageError as e:
            logger.error("Failed to import chat: %s", e.message, extra={"event": "chat.store_failed"})
            self._notifier.error(f"Failed to import chat: {e.message}")
            return None
        self._navigator.replace(new_id)
        self._notifier.success("Chat imported successfully")
        return new_id

    async def export_chat(self, chat_ref: str | None = None) -> ChatExport | None:
        chat_ref = chat_ref or self.url_id or self.chat_id
        if chat_ref is None:
            return None
        try:
            record = await asyncio.to_thread(get_messages, self.db, chat_ref)
        except StorageError as e:
            logger.error("Failed to export chat %s: %s", chat_ref, e.message, extra={"event": "chat.load_failed"})
            self._notifier.error(f"Failed to export chat: {e.message}")
            return None
        if record is None:
            self._notifier.error(f"Failed to export chat: chat {chat_ref} not found")
            return None
        return chat_to_export(record)

    # ---------- Helpers ----------

    def _engage_fallback(self, error: StorageUnavailableError) -> bool:
        """Switches this session to the fallback cache for good. False if already there."""
        if self._fallback is None or self.db is self._fallback:
            return False
        logger.error(
            "Chat persistence unavailable, switching to fallback cache: %s",
            error.message,
            extra={"event": "storage.fallback_engaged"},
        )
        self.db = self._fallback
        return True
