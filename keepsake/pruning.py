"""
Retention: cap the number of unlabeled snapshots per document.

Labeled snapshots (manual saves, safety snapshots) are never pruned.
Callers must hold the document's lock; ``VersionStore.prune`` is the
locked entry point.
"""

import logging
from pathlib import Path

import aiofiles.os

from .config import VersionHistoryConfig
from .errors import classify
from .manifest import read_manifest, version_file_path, write_manifest
from .types import VersionResult, sort_newest_first

logger = logging.getLogger(__name__)


async def prune_versions(directory: Path, config: VersionHistoryConfig) -> VersionResult:
    """
    Delete the oldest unlabeled snapshots beyond ``config.max_versions``.

    Reads the manifest fresh from disk so it prunes against what the
    preceding save just wrote. A missing manifest means there is nothing
    to prune.
    """
    try:
        if not await aiofiles.os.path.isdir(directory):
            return VersionResult.ok()
        manifest = await read_manifest(directory)
        if manifest is None:
            return VersionResult.ok()

        labeled = [v for v in manifest.versions if v.label]
        unlabeled = [v for v in manifest.versions if not v.label]
        excess = len(unlabeled) - config.max_versions
        if excess <= 0:
            return VersionResult.ok()

        oldest_first = sorted(unlabeled, key=lambda v: (v.created, v.id))
        doomed, kept = oldest_first[:excess], oldest_first[excess:]

        for entry in doomed:
            path = version_file_path(directory, entry.id)
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Failed to delete pruned version %s: %s", path, e)

        manifest.versions = sort_newest_first(labeled + kept)
        manifest.touch()
        await write_manifest(directory, manifest)
        logger.info(
            "Pruned %d versions of %s/%s (keeping %d unlabeled, %d labeled)",
            len(doomed), manifest.collection_id, manifest.document_id,
            len(kept), len(labeled),
        )
        return VersionResult.ok()
    except Exception as e:
        logger.error("Failed to prune versions in %s: %s", directory, e)
        return VersionResult.fail(f"Failed to prune versions: {e}", classify(e))
