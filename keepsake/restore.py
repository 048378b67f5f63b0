"""
Restore a snapshot into the live document.

The live file is only overwritten once the target snapshot has been read,
so restoring a missing version cannot destroy current content. Unless told
otherwise, the current live content is first saved as a labeled "safety
snapshot" that retention will not prune.
"""

import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from .config import VersionHistoryConfig
from .errors import ErrorKind, VersionNotFoundError, classify
from .store import VersionStore
from .types import RestoreResult

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_LABEL = "Before restore"


async def restore_version(
    store: VersionStore,
    project_root: Path,
    collection_id: str,
    document_id: str,
    version_id: str,
    live_path: Path,
    config: VersionHistoryConfig,
    *,
    safety_label: str = DEFAULT_SAFETY_LABEL,
    skip_safety: bool = False,
) -> RestoreResult:
    """
    Overwrite ``live_path`` with the content of a stored version.

    Args:
        live_path: The document's live file
        safety_label: Label for the snapshot of the current content
        skip_safety: Don't snapshot the current content first

    Returns:
        RestoreResult with the restored entry and content, plus the safety
        snapshot entry if one was created
    """
    if not config.enabled:
        return RestoreResult(
            success=False, error="Version history is disabled", error_kind=ErrorKind.DISABLED,
        )

    try:
        target = await store.get(project_root, collection_id, document_id, version_id, config)
        if target is None:
            return RestoreResult(
                success=False,
                error=str(VersionNotFoundError(collection_id, document_id, version_id)),
                error_kind=ErrorKind.NOT_FOUND,
            )

        safety_snapshot = None
        if not skip_safety and await aiofiles.os.path.exists(live_path):
            try:
                async with aiofiles.open(live_path, "r", encoding="utf-8") as f:
                    current = await f.read()
                saved = await store.save(
                    project_root, collection_id, document_id, current, config,
                    label=safety_label,
                )
                if saved.success and saved.version is not None:
                    safety_snapshot = saved.version
                else:
                    logger.warning("Safety snapshot before restore failed: %s", saved.error)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Failed to create safety snapshot before restore: %s", e)

        async with aiofiles.open(live_path, "w", encoding="utf-8") as f:
            await f.write(target.content)
        logger.info(
            "Restored %s/%s to version %s", collection_id, document_id, version_id,
        )

        return RestoreResult(
            success=True,
            version=target.entry(),
            content=target.content,
            safety_snapshot=safety_snapshot,
        )
    except Exception as e:
        logger.error("Failed to restore version %s: %s", version_id, e)
        return RestoreResult(
            success=False, error=f"Failed to restore version: {e}", error_kind=classify(e),
        )
