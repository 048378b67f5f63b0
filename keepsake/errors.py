"""
Error kinds and error logging for keepsake.

Write operations report failures as results tagged with an ``ErrorKind``;
the exceptions below are raised internally and translated at the store
boundary. ``log_exception`` keeps full tracebacks for the CLI while users
see a one-line message.
"""

import os
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path


class ErrorKind(str, Enum):
    """Failure categories reported in ``VersionResult.error_kind``."""
    NOT_FOUND = "not_found"
    LOCK_TIMEOUT = "lock_timeout"
    MANIFEST_CORRUPT = "manifest_corrupt"
    IO_ERROR = "io_error"
    DISABLED = "disabled"
    INVALID = "invalid"


class HistoryError(Exception):
    """Base class for version history errors."""
    kind = ErrorKind.IO_ERROR


class VersionNotFoundError(HistoryError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, collection_id: str, document_id: str, version_id: str):
        super().__init__(
            f"Version '{version_id}' not found for '{document_id}' in '{collection_id}'"
        )
        self.collection_id = collection_id
        self.document_id = document_id
        self.version_id = version_id


class LockTimeoutError(HistoryError):
    kind = ErrorKind.LOCK_TIMEOUT

    def __init__(self, path: str, timeout: float):
        super().__init__(f"Timeout waiting for lock on {path} after {timeout:g}s")
        self.path = path
        self.timeout = timeout


class ManifestCorruptError(HistoryError):
    """Manifest data does not match the schema. Triggers recovery, never surfaced."""
    kind = ErrorKind.MANIFEST_CORRUPT


class ConfigError(HistoryError, ValueError):
    kind = ErrorKind.INVALID


def classify(exc: BaseException) -> ErrorKind:
    """Map an exception raised inside an operation to an ``ErrorKind``."""
    if isinstance(exc, HistoryError):
        return exc.kind
    if isinstance(exc, FileNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, ValueError):
        return ErrorKind.INVALID
    return ErrorKind.IO_ERROR


def _error_log_path() -> Path:
    """Resolve error log path, respecting KEEPSAKE_HOME."""
    home = os.environ.get("KEEPSAKE_HOME")
    if home:
        return Path(home) / "keepsake-errors.log"
    return Path.home() / ".keepsake" / "keepsake-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Can't write error log; don't crash over it
    return log_path
