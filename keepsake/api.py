"""
Version history for one project.

``VersionHistory`` binds a project root and its settings to a
``VersionStore`` so callers only pass document coordinates:

    history = VersionHistory("/path/to/site", {"max_versions": 50})
    await history.save("blog", "hello-world", content)
    entries = await history.list("blog", "hello-world")
    await history.restore("blog", "hello-world", entries[1].id, live_path)

When history is disabled, save returns success without writing, list
returns [], get returns None and restore fails with ``ErrorKind.DISABLED``.
Delete, clear and prune still operate on whatever history exists.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .config import PartialConfig, VersionHistoryConfig, load_config, resolve_config
from .locking import LockManager
from .restore import DEFAULT_SAFETY_LABEL, restore_version
from .store import VersionStore
from .types import RestoreResult, Version, VersionEntry, VersionResult

logger = logging.getLogger(__name__)


class VersionHistory:
    """
    Config-aware entry point to the version store.

    Args:
        project_root: Directory the storage path is relative to
        config: Partial settings merged onto the defaults
        locks: Process-wide lock manager; share one between every
            VersionHistory that can touch the same project
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        config: PartialConfig = None,
        locks: Optional[LockManager] = None,
    ):
        self.project_root = Path(project_root)
        self.config: VersionHistoryConfig = resolve_config(config)
        self.store = VersionStore(locks)

    @classmethod
    def from_project(
        cls,
        project_root: Union[str, Path],
        locks: Optional[LockManager] = None,
    ) -> "VersionHistory":
        """Create using the settings in the project's ``keepsake.toml``."""
        result = load_config(Path(project_root))
        for warning in result.warnings:
            logger.warning(warning)
        return cls(project_root, result.config, locks)

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def storage_root(self) -> Path:
        return self.project_root / self.config.storage_path

    async def save(
        self,
        collection_id: str,
        document_id: str,
        content: str,
        *,
        label: Optional[str] = None,
        skip_if_identical: bool = False,
    ) -> VersionResult:
        return await self.store.save(
            self.project_root, collection_id, document_id, content, self.config,
            label=label, skip_if_identical=skip_if_identical,
        )

    async def list(self, collection_id: str, document_id: str) -> list[VersionEntry]:
        return await self.store.list(self.project_root, collection_id, document_id, self.config)

    async def get(self, collection_id: str, document_id: str, version_id: str) -> Optional[Version]:
        return await self.store.get(
            self.project_root, collection_id, document_id, version_id, self.config,
        )

    async def delete(self, collection_id: str, document_id: str, version_id: str) -> VersionResult:
        return await self.store.delete(
            self.project_root, collection_id, document_id, version_id, self.config,
        )

    async def clear(self, collection_id: str, document_id: str) -> VersionResult:
        return await self.store.clear(self.project_root, collection_id, document_id, self.config)

    async def prune(self, collection_id: str, document_id: str) -> VersionResult:
        return await self.store.prune(self.project_root, collection_id, document_id, self.config)

    async def restore(
        self,
        collection_id: str,
        document_id: str,
        version_id: str,
        live_path: Union[str, Path],
        *,
        safety_label: str = DEFAULT_SAFETY_LABEL,
        skip_safety: bool = False,
    ) -> RestoreResult:
        return await restore_version(
            self.store, self.project_root, collection_id, document_id, version_id,
            Path(live_path), self.config,
            safety_label=safety_label, skip_safety=skip_safety,
        )
