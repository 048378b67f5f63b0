"""
Keepsake

Timestamped version history for text documents, stored as plain files next
to a JSON manifest.

Quick Start:
    from keepsake import VersionHistory

    history = VersionHistory("/path/to/project")   # uses .versions/
    await history.save("blog", "hello-world", content)
    for entry in await history.list("blog", "hello-world"):
        print(entry.id, entry.preview)

CLI Usage:
    keepsake save blog hello-world src/content/blog/hello-world.md
    keepsake list blog hello-world --json
    keepsake restore blog hello-world <version-id> src/content/blog/hello-world.md

Environment Variables:
    KEEPSAKE_ROOT     - Project root for the CLI (default: current directory)
    KEEPSAKE_HOME     - Where the CLI error log goes (default: ~/.keepsake/)
    KEEPSAKE_VERBOSE  - Set to 1 for debug logging
"""

from .api import VersionHistory
from .config import DEFAULT_CONFIG, VersionHistoryConfig, is_enabled, resolve_config
from .errors import ErrorKind
from .locking import LockManager
from .store import VersionStore
from .types import RestoreResult, Version, VersionEntry, VersionManifest, VersionResult

__version__ = "0.1.0"
__all__ = [
    "VersionHistory",
    "VersionStore",
    "LockManager",
    "VersionHistoryConfig",
    "DEFAULT_CONFIG",
    "resolve_config",
    "is_enabled",
    "ErrorKind",
    "VersionEntry",
    "VersionManifest",
    "Version",
    "VersionResult",
    "RestoreResult",
]
