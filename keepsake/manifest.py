"""
Per-document version manifest.

Each document's history lives in its own directory:

    <project>/<storage_path>/
        .gitignore                  "*" (keeps history out of git)
        <collection>/<document>/
            manifest.json           index of snapshots
            <versionId>.md          one file per snapshot

The manifest is a cache of what the snapshot files already say. If it is
missing or does not parse, ``recover_manifest`` rebuilds it from the files:
ids give the timestamps, the embedded frontmatter gives the labels.
"""

import json
import logging
import secrets
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from .config import VersionHistoryConfig
from .errors import ManifestCorruptError
from .frontmatter import extract_label, generate_preview
from .ids import parse_id
from .types import (
    VersionEntry,
    VersionManifest,
    format_timestamp,
    sort_newest_first,
    validate_segment,
)

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"
VERSION_SUFFIX = ".md"
IGNORE_FILENAME = ".gitignore"
IGNORE_CONTENT = "*\n"


# -----------------------------------------------------------------------------
# Paths
# -----------------------------------------------------------------------------

def storage_root(project_root: Path, config: VersionHistoryConfig) -> Path:
    return Path(project_root) / config.storage_path


def storage_dir(
    project_root: Path,
    collection_id: str,
    document_id: str,
    config: VersionHistoryConfig,
) -> Path:
    """Directory holding one document's manifest and snapshots."""
    validate_segment(collection_id, "collection id")
    validate_segment(document_id, "document id")
    return storage_root(project_root, config) / collection_id / document_id


def version_file_path(directory: Path, version_id: str) -> Path:
    return directory / f"{version_id}{VERSION_SUFFIX}"


def manifest_path(directory: Path) -> Path:
    return directory / MANIFEST_FILENAME


async def ensure_ignore_marker(project_root: Path, config: VersionHistoryConfig) -> None:
    """Create the storage root and its ``.gitignore`` if missing."""
    root = storage_root(project_root, config)
    await aiofiles.os.makedirs(root, exist_ok=True)
    marker = root / IGNORE_FILENAME
    if not await aiofiles.os.path.exists(marker):
        async with aiofiles.open(marker, "w", encoding="utf-8") as f:
            await f.write(IGNORE_CONTENT)


# -----------------------------------------------------------------------------
# Read / write
# -----------------------------------------------------------------------------

def empty_manifest(collection_id: str, document_id: str) -> VersionManifest:
    return VersionManifest(document_id=document_id, collection_id=collection_id)


async def read_manifest(directory: Path) -> Optional[VersionManifest]:
    """
    Read a document's manifest.

    Returns:
        The manifest, or None if it is missing, unreadable or fails schema
        validation. None means "recover from the snapshot files".
    """
    path = manifest_path(directory)
    if not await aiofiles.os.path.exists(path):
        return None
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            text = await f.read()
        return VersionManifest.from_dict(json.loads(text))
    except ManifestCorruptError as e:
        logger.warning("Corrupted manifest at %s: %s", path, e)
        return None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Failed to read manifest at %s: %s", path, e)
        return None


async def write_manifest(directory: Path, manifest: VersionManifest) -> None:
    """Write the manifest, replacing the old one in a single rename."""
    await aiofiles.os.makedirs(directory, exist_ok=True)
    path = manifest_path(directory)
    tmp = path.with_name(f".{MANIFEST_FILENAME}.{secrets.token_hex(4)}.tmp")
    text = json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False)
    try:
        async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
            await f.write(text)
        await aiofiles.os.replace(tmp, path)
    except BaseException:
        if await aiofiles.os.path.exists(tmp):
            await aiofiles.os.remove(tmp)
        raise


async def list_version_files(directory: Path) -> list[str]:
    """Names of the snapshot files in ``directory`` (manifest excluded)."""
    if not await aiofiles.os.path.isdir(directory):
        return []
    names = await aiofiles.os.listdir(directory)
    return sorted(
        n for n in names
        if n.endswith(VERSION_SUFFIX) and not n.startswith(".")
    )


# -----------------------------------------------------------------------------
# Recovery
# -----------------------------------------------------------------------------

async def _entry_from_file(directory: Path, filename: str) -> Optional[VersionEntry]:
    version_id = filename[: -len(VERSION_SUFFIX)]
    created = parse_id(version_id)
    if created is None:
        logger.warning("Skipping file with unrecognized version id: %s", filename)
        return None
    path = directory / filename
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
        stat = await aiofiles.os.stat(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Skipping unreadable version file %s: %s", filename, e)
        return None
    return VersionEntry(
        id=version_id,
        timestamp=format_timestamp(created),
        preview=generate_preview(content),
        size=stat.st_size,
        label=extract_label(content),
    )


async def recover_manifest(
    directory: Path,
    collection_id: str,
    document_id: str,
    *,
    persist: bool = True,
) -> VersionManifest:
    """
    Rebuild a manifest from the snapshot files in ``directory``.

    With ``persist`` the result is written back, which requires the
    document's lock. Lock-free readers pass ``persist=False`` and get an
    in-memory copy; the next locked write rebuilds and saves it.

    Files whose names are not version ids, and files that cannot be read,
    are skipped. Never raises: the worst case is an empty manifest.
    """
    manifest = empty_manifest(collection_id, document_id)
    if not await aiofiles.os.path.isdir(directory):
        return manifest

    try:
        for filename in await list_version_files(directory):
            entry = await _entry_from_file(directory, filename)
            if entry is not None:
                manifest.versions.append(entry)
        manifest.versions = sort_newest_first(manifest.versions)
        manifest.touch()
        if persist:
            await write_manifest(directory, manifest)
        logger.info(
            "Recovered manifest for %s/%s: %d versions%s",
            collection_id, document_id, len(manifest.versions),
            "" if persist else " (not saved)",
        )
    except OSError as e:
        logger.warning("Failed to recover manifest in %s: %s", directory, e)
    return manifest


async def get_or_recover_manifest(
    directory: Path,
    collection_id: str,
    document_id: str,
    *,
    persist: bool = True,
) -> VersionManifest:
    """Read the manifest, rebuilding it from the snapshot files if needed."""
    manifest = await read_manifest(directory)
    if manifest is not None:
        return manifest
    return await recover_manifest(directory, collection_id, document_id, persist=persist)
