class LanzzaError(Exception):
    """Base exception for all expected lanzza errors."""

    message: str
    exit_code: int

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


class ConfigurationError(LanzzaError):
    """Configuration related errors (env vars, data directories)."""


class InvalidInputError(LanzzaError):
    """User input validation errors."""


class StorageError(LanzzaError):
    """Any fault raised by a chat storage backend."""


class NotFoundError(StorageError):
    """The requested chat (or message within it) has no record yet."""


class StorageUnavailableError(StorageError):
    """The primary store cannot be reached at all."""


class CorruptRecordError(StorageUnavailableError):
    """A single stored record could not be decoded."""


class StorageWriteError(StorageError):
    """A write failed after the store was reachable."""


class SnapshotRestoreError(LanzzaError):
    """Applying snapshot files to the workspace failed for one or more entries."""

    failed_paths: list[str]

    def __init__(self, message: str, failed_paths: list[str]):
        super().__init__(message)
        self.failed_paths = failed_paths
