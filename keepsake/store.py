"""
File-backed version store.

Snapshots of a document are plain files next to a JSON manifest (see
``manifest``). The store keeps two kinds of promises:

- Mutations (save, delete, clear, prune) for one document run one at a time
  under that document's lock, and report failure as a ``VersionResult``
  rather than raising.
- Reads (list, get) take no lock and never write or raise. A failed read
  logs a warning and comes back empty, so history problems never block
  editing.

Every operation takes the resolved ``VersionHistoryConfig``; when history is
disabled, save/list/get are quiet no-ops.
"""

import logging
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from .config import VersionHistoryConfig
from .errors import VersionNotFoundError, classify
from .frontmatter import (
    extract_label,
    generate_preview,
    inject_label,
    split_frontmatter,
    strip_label,
)
from .ids import is_valid_id, new_version_id, parse_id
from .locking import LockManager
from .manifest import (
    empty_manifest,
    ensure_ignore_marker,
    get_or_recover_manifest,
    list_version_files,
    read_manifest,
    storage_dir,
    version_file_path,
    write_manifest,
)
from .pruning import prune_versions
from .types import (
    Version,
    VersionEntry,
    VersionResult,
    format_timestamp,
    sort_newest_first,
)

logger = logging.getLogger(__name__)


async def _read_text(path: Path) -> str:
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        return await f.read()


async def _write_text(path: Path, text: str) -> None:
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(text)


class VersionStore:
    """
    Version history for documents under a project root.

    Args:
        locks: Lock manager shared by every store touching the same files.
            One per process; a private one is created if omitted.
    """

    def __init__(self, locks: Optional[LockManager] = None):
        self.locks = locks or LockManager()

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    async def save(
        self,
        project_root: Path,
        collection_id: str,
        document_id: str,
        content: str,
        config: VersionHistoryConfig,
        *,
        label: Optional[str] = None,
        skip_if_identical: bool = False,
    ) -> VersionResult:
        """
        Save a snapshot of ``content``, then apply retention.

        Args:
            label: Name for a manual snapshot; labeled snapshots are never pruned
            skip_if_identical: Return the latest snapshot instead of writing a
                new one when its stored content equals ``content``

        Returns:
            VersionResult with the new (or reused) entry. Disabled history
            returns success with no entry.
        """
        if not config.enabled:
            return VersionResult.ok()

        try:
            directory = storage_dir(project_root, collection_id, document_id, config)
            async with self.locks.hold(directory):
                await ensure_ignore_marker(project_root, config)
                await aiofiles.os.makedirs(directory, exist_ok=True)
                manifest = await get_or_recover_manifest(directory, collection_id, document_id)

                if skip_if_identical and manifest.versions:
                    latest = sort_newest_first(manifest.versions)[0]
                    if await self._stored_content_equals(directory, latest.id, content):
                        logger.debug("Content unchanged, reusing version %s", latest.id)
                        return VersionResult.ok(latest)

                version_id, created = new_version_id()
                path = version_file_path(directory, version_id)
                await _write_text(path, inject_label(content, label) if label else content)
                stat = await aiofiles.os.stat(path)

                entry = VersionEntry(
                    id=version_id,
                    timestamp=format_timestamp(created),
                    preview=generate_preview(content),
                    size=stat.st_size,
                    label=label or None,
                )
                manifest.versions.insert(0, entry)
                manifest.touch()
                await write_manifest(directory, manifest)
                logger.info(
                    "Saved version %s of %s/%s%s",
                    version_id, collection_id, document_id,
                    f" ({label})" if label else "",
                )

                pruned = await prune_versions(directory, config)
                if not pruned.success:
                    logger.warning("Retention after save failed: %s", pruned.error)

                return VersionResult.ok(entry)
        except Exception as e:
            logger.error("Failed to save version of %s/%s: %s", collection_id, document_id, e)
            return VersionResult.fail(f"Failed to save version: {e}", classify(e))

    async def _stored_content_equals(self, directory: Path, version_id: str, content: str) -> bool:
        path = version_file_path(directory, version_id)
        try:
            return await _read_text(path) == content
        except (OSError, UnicodeDecodeError):
            # Unreadable latest snapshot: fall through and save a new one
            return False

    async def delete(
        self,
        project_root: Path,
        collection_id: str,
        document_id: str,
        version_id: str,
        config: VersionHistoryConfig,
    ) -> VersionResult:
        """Delete one snapshot and its manifest entry."""
        try:
            if not is_valid_id(version_id):
                raise VersionNotFoundError(collection_id, document_id, version_id)
            directory = storage_dir(project_root, collection_id, document_id, config)
            async with self.locks.hold(directory):
                path = version_file_path(directory, version_id)
                if not await aiofiles.os.path.exists(path):
                    raise VersionNotFoundError(collection_id, document_id, version_id)

                manifest = await get_or_recover_manifest(directory, collection_id, document_id)
                entry = manifest.find(version_id)

                await aiofiles.os.remove(path)

                if entry is not None:
                    manifest.versions.remove(entry)
                    manifest.touch()
                    await write_manifest(directory, manifest)
                logger.info("Deleted version %s of %s/%s", version_id, collection_id, document_id)
                return VersionResult.ok(entry)
        except VersionNotFoundError as e:
            return VersionResult.fail(str(e), e.kind)
        except Exception as e:
            logger.error("Failed to delete version %s: %s", version_id, e)
            return VersionResult.fail(f"Failed to delete version: {e}", classify(e))

    async def clear(
        self,
        project_root: Path,
        collection_id: str,
        document_id: str,
        config: VersionHistoryConfig,
    ) -> VersionResult:
        """Delete every snapshot of a document and reset its manifest to empty."""
        try:
            directory = storage_dir(project_root, collection_id, document_id, config)
            if not await aiofiles.os.path.isdir(directory):
                return VersionResult.ok()

            async with self.locks.hold(directory):
                removed = 0
                for filename in await list_version_files(directory):
                    try:
                        await aiofiles.os.remove(directory / filename)
                        removed += 1
                    except OSError as e:
                        logger.warning("Failed to delete %s: %s", directory / filename, e)

                await write_manifest(directory, empty_manifest(collection_id, document_id))
                logger.info("Cleared %d versions of %s/%s", removed, collection_id, document_id)
                return VersionResult.ok()
        except Exception as e:
            logger.error("Failed to clear versions of %s/%s: %s", collection_id, document_id, e)
            return VersionResult.fail(f"Failed to clear versions: {e}", classify(e))

    async def prune(
        self,
        project_root: Path,
        collection_id: str,
        document_id: str,
        config: VersionHistoryConfig,
    ) -> VersionResult:
        """Apply retention outside of a save."""
        try:
            directory = storage_dir(project_root, collection_id, document_id, config)
            if not await aiofiles.os.path.isdir(directory):
                return VersionResult.ok()
            async with self.locks.hold(directory):
                return await prune_versions(directory, config)
        except Exception as e:
            logger.error("Failed to prune versions of %s/%s: %s", collection_id, document_id, e)
            return VersionResult.fail(f"Failed to prune versions: {e}", classify(e))

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    async def list(
        self,
        project_root: Path,
        collection_id: str,
        document_id: str,
        config: VersionHistoryConfig,
    ) -> list[VersionEntry]:
        """All snapshots of a document, newest first. Empty on any failure."""
        if not config.enabled:
            return []
        try:
            directory = storage_dir(project_root, collection_id, document_id, config)
            if not await aiofiles.os.path.isdir(directory):
                return []
            # No lock held here, so a rebuilt manifest is not written back
            manifest = await get_or_recover_manifest(
                directory, collection_id, document_id, persist=False,
            )
            return sort_newest_first(manifest.versions)
        except Exception as e:
            logger.warning("Failed to list versions of %s/%s: %s", collection_id, document_id, e)
            return []

    async def get(
        self,
        project_root: Path,
        collection_id: str,
        document_id: str,
        version_id: str,
        config: VersionHistoryConfig,
    ) -> Optional[Version]:
        """
        Load one snapshot with its content.

        The returned content has the internal label key removed. The label
        comes from the manifest when it records one, else from the file.

        Returns:
            The version, or None if missing, disabled, or unreadable
        """
        if not config.enabled:
            return None
        created = parse_id(version_id)
        if created is None:
            return None
        try:
            directory = storage_dir(project_root, collection_id, document_id, config)
            path = version_file_path(directory, version_id)
            if not await aiofiles.os.path.exists(path):
                return None

            raw = await _read_text(path)
            stat = await aiofiles.os.stat(path)
            content = strip_label(raw)
            try:
                frontmatter, body = split_frontmatter(content)
            except ValueError:
                frontmatter, body = {}, content

            manifest = await read_manifest(directory)
            manifest_entry = manifest.find(version_id) if manifest else None
            label = (manifest_entry.label if manifest_entry else None) or extract_label(raw)

            return Version(
                id=version_id,
                timestamp=format_timestamp(created),
                preview=generate_preview(content),
                size=stat.st_size,
                label=label,
                content=content,
                frontmatter=frontmatter,
                body=body.strip(),
            )
        except Exception as e:
            logger.warning("Failed to get version %s: %s", version_id, e)
            return None
