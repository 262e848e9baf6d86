import base64
import binascii
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from lanzza.chatstore import ChatBackend, set_snapshot
from lanzza.exceptions import InvalidInputError, SnapshotRestoreError
from lanzza.lib.atomic_io import atomic_write_bytes, atomic_write_text
from lanzza.models import FileEntry, FileMap, FolderEntry, Snapshot

logger = logging.getLogger(__name__)

IGNORED_DIRS = frozenset({".git", "node_modules"})


@runtime_checkable
class Workspace(Protocol):
    """The live file tree the MVP builder runs against."""

    @property
    def workdir(self) -> str: ...

    def mkdir(self, path: str) -> None: ...

    def write_file(self, path: str, content: str | bytes) -> None: ...

    def files(self) -> FileMap: ...


class LocalWorkspace:
    """
    A workspace backed by a local directory.

    Paths handed in may be absolute-in-workspace ("/home/project/src/a.ts") or
    workspace-relative ("src/a.ts"); both resolve inside root, anything escaping
    root is rejected.
    """

    root: Path

    def __init__(self, root: Path, workdir: str | None = None) -> None:
        self.root = Path(os.path.abspath(root))
        self._workdir = workdir or self.root.as_posix()

    @property
    def workdir(self) -> str:
        return self._workdir

    def mkdir(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def write_file(self, path: str, content: str | bytes) -> None:
        target = self._resolve(path)
        match content:
            case str():
                atomic_write_text(target, content)
            case bytes():
                atomic_write_bytes(target, content)

    def files(self) -> FileMap:
        """Enumerates the current tree as workdir-prefixed paths, skipping VCS and dependency folders."""
        result: FileMap = {}
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
            current = Path(dirpath)
            for name in dirnames:
                result[self._key_for(current / name)] = FolderEntry()
            for name in sorted(filenames):
                path = current / name
                try:
                    data = path.read_bytes()
                except OSError:
                    logger.warning("Skipping unreadable workspace file %s", path)
                    continue
                result[self._key_for(path)] = _file_entry_from_bytes(data)
        return result

    def _key_for(self, path: Path) -> str:
        rel = path.relative_to(self.root).as_posix()
        return f"{self._workdir.rstrip('/')}/{rel}"

    def _resolve(self, path: str) -> Path:
        rel = normalize_workspace_path(path, self._workdir).lstrip("/")
        target = Path(os.path.normpath(self.root / rel))
        try:
            _ = target.relative_to(self.root)
        except ValueError as e:
            raise InvalidInputError(f"Path '{path}' is outside the workspace root '{self.root}'") from e
        return target


class DetachedWorkspace:
    """A workspace that is never written to; loads through it leave the disk untouched."""

    def __init__(self, workdir: str) -> None:
        self._workdir = workdir

    @property
    def workdir(self) -> str:
        return self._workdir

    def mkdir(self, path: str) -> None:
        logger.debug("Skipping folder %s, workspace is detached", path)

    def write_file(self, path: str, content: str | bytes) -> None:
        logger.debug("Skipping file %s, workspace is detached", path)

    def files(self) -> FileMap:
        return {}


def _file_entry_from_bytes(data: bytes) -> FileEntry:
    if b"\x00" not in data:
        try:
            return FileEntry(content=data.decode("utf-8"))
        except UnicodeDecodeError:
            pass
    return FileEntry(content=base64.b64encode(data).decode("ascii"), is_binary=True)


def normalize_workspace_path(path: str, workdir: str) -> str:
    """Strips the workspace-root prefix that stored paths carry inconsistently."""
    if workdir and path.startswith(workdir):
        return path[len(workdir) :]
    return path


def restore_snapshot(workspace: Workspace, files: Mapping[str, FileEntry | FolderEntry]) -> None:
    """
    Applies snapshot files to the workspace: every folder first, then every file.

    Keeps going past individual failures and raises one SnapshotRestoreError at the
    end; entries already written stay written.
    """
    failed: list[str] = []

    for key, entry in files.items():
        if isinstance(entry, FolderEntry):
            path = normalize_workspace_path(key, workspace.workdir)
            try:
                workspace.mkdir(path)
            except (OSError, InvalidInputError) as e:
                logger.error("Failed to create folder %s: %s", path, e, extra={"event": "snapshot.restore_failed"})
                failed.append(key)

    for key, entry in files.items():
        if isinstance(entry, FileEntry):
            path = normalize_workspace_path(key, workspace.workdir)
            try:
                content: str | bytes = base64.b64decode(entry.content) if entry.is_binary else entry.content
                workspace.write_file(path, content)
            except (OSError, InvalidInputError, binascii.Error) as e:
                logger.error("Failed to write file %s: %s", path, e, extra={"event": "snapshot.restore_failed"})
                failed.append(key)

    if failed:
        raise SnapshotRestoreError(f"Failed to restore {len(failed)} snapshot entries.", failed)


def take_snapshot(
    db: ChatBackend,
    chat_id: str,
    cursor_message_id: str,
    files: FileMap,
    summary: str | None = None,
) -> Snapshot:
    """Captures the workspace files as of cursor_message_id, replacing any previous snapshot."""
    snapshot = Snapshot(cursor_message_id=cursor_message_id, files=dict(files), summary=summary)
    set_snapshot(db, chat_id, snapshot)
    return snapshot
