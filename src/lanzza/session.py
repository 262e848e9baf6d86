import asyncio
from pathlib import Path

from lanzza.chatstore import ChatBackend, get_messages, open_backend, open_fallback_backend
from lanzza.config import LanzzaSettings
from lanzza.console import ConsoleNotifier, Notifier
from lanzza.core.chat_history import ChatHistory, Navigator
from lanzza.core.workspace_sync import DetachedWorkspace, LocalWorkspace, Workspace
from lanzza.exceptions import ConfigurationError, NotFoundError
from lanzza.models import ChatRecord


async def _skip_wait(_seconds: float) -> None:
    return None


class Session:
    """
    Storage, workspace and notification wiring for one CLI invocation.

    The backend is chosen once here; a ChatHistory created from the session can
    still degrade to the fallback cache on its own.
    """

    settings: LanzzaSettings
    db: ChatBackend
    fallback: ChatBackend | None
    workspace: LocalWorkspace
    notifier: Notifier

    def __init__(self, settings: LanzzaSettings, notifier: Notifier | None = None):
        self.settings = settings
        self.notifier = notifier or ConsoleNotifier()

        data_dir = settings.data_dir
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Could not create data directory {data_dir}: {e}") from e

        self.db = open_backend(data_dir, settings.persistence_enabled)
        self.fallback = open_fallback_backend(data_dir) if self.db.name != "fallback" else None
        self.workspace = LocalWorkspace(settings.workdir)

    @classmethod
    def load_active(cls) -> "Session":
        return cls(LanzzaSettings.from_env())

    @property
    def data_dir(self) -> Path:
        return self.settings.data_dir

    def chat_history(
        self, navigator: Navigator | None = None, wait: bool = True, write_files: bool = True
    ) -> ChatHistory:
        """With write_files=False, snapshot restores during load leave the workspace untouched."""
        workspace: Workspace = self.workspace if write_files else DetachedWorkspace(self.workspace.workdir)
        return ChatHistory(
            self.db,
            workspace,
            self.notifier,
            fallback=self.fallback,
            navigator=navigator,
            sleep=asyncio.sleep if wait else _skip_wait,
            attempt_timeout=self.settings.attempt_timeout,
        )

    def require_chat(self, chat_ref: str) -> ChatRecord:
        """Reads a chat by id or url id, without any retrying."""
        record = get_messages(self.db, chat_ref)
        if record is None:
            raise NotFoundError(f"Chat '{chat_ref}' not found.")
        return record
