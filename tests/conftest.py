# pyright: standard
from pathlib import Path

import pytest

from lanzza.chatstore import FallbackCache, MemoryKeyValueStore, SQLiteChatBackend
from lanzza.core.chat_history import ChatHistory
from lanzza.core.workspace_sync import LocalWorkspace
from tests.helpers import RecordingNavigator, RecordingNotifier, RecordingSleep

WORKDIR = "/home/project"


@pytest.fixture
def sqlite_db(tmp_path: Path) -> SQLiteChatBackend:
    return SQLiteChatBackend(tmp_path / "data" / "chats.sqlite3")


@pytest.fixture
def fallback_db() -> FallbackCache:
    return FallbackCache(MemoryKeyValueStore())


@pytest.fixture(params=["sqlite", "fallback"])
def any_db(request: pytest.FixtureRequest, tmp_path: Path) -> SQLiteChatBackend | FallbackCache:
    """Runs a test once against each ChatBackend implementation."""
    if request.param == "sqlite":
        return SQLiteChatBackend(tmp_path / "data" / "chats.sqlite3")
    return FallbackCache(MemoryKeyValueStore())


@pytest.fixture
def workspace(tmp_path: Path) -> LocalWorkspace:
    root = tmp_path / "project"
    root.mkdir()
    return LocalWorkspace(root, workdir=WORKDIR)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def chat_history(
    sqlite_db: SQLiteChatBackend,
    workspace: LocalWorkspace,
    notifier: RecordingNotifier,
    navigator: RecordingNavigator,
    sleep: RecordingSleep,
) -> ChatHistory:
    return ChatHistory(sqlite_db, workspace, notifier, navigator=navigator, sleep=sleep)


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Points the CLI at a throwaway data dir and workspace; returns the data dir."""
    data_dir = tmp_path / "data"
    project = tmp_path / "project"
    project.mkdir(exist_ok=True)
    monkeypatch.setenv("LANZZA_DATA_DIR", str(data_dir))
    monkeypatch.setenv("LANZZA_WORKDIR", str(project))
    monkeypatch.delenv("LANZZA_DISABLE_PERSISTENCE", raising=False)
    monkeypatch.delenv("LANZZA_ATTEMPT_TIMEOUT", raising=False)
    return data_dir
