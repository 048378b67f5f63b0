"""
Data types for version history.

Records here are plain dataclasses. The manifest records carry strict
``from_dict`` parsers: anything that does not match the on-disk schema is
reported as ``ManifestCorruptError`` so the caller can rebuild from the
snapshot files instead of failing later on a bad field.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .errors import ErrorKind, ManifestCorruptError
from .ids import is_valid_id


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as canonical ISO-8601 UTC with a ``Z`` suffix.

    Always carries microseconds so stored timestamps sort as strings.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_utc_timestamp(ts: str) -> datetime:
    """Parse a stored timestamp string to a timezone-aware UTC datetime.

    Handles the canonical format as well as millisecond precision,
    '+00:00' suffixes and naive timestamps (assumed UTC).
    """
    ts = ts.replace("Z", "+00:00")
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# Collection and document ids become directory names, so they must be a
# single safe path segment.
MAX_SEGMENT_LENGTH = 255
_SEGMENT_BLOCKED_RE = re.compile(r'[\x00-\x1f\x7f/\\:*?"<>|]')


def validate_segment(value: str, what: str = "id") -> None:
    """Validate that a collection or document id is a safe directory name."""
    if not value or len(value) > MAX_SEGMENT_LENGTH:
        raise ValueError(f"{what} must be 1-{MAX_SEGMENT_LENGTH} characters")
    if value in (".", "..") or _SEGMENT_BLOCKED_RE.search(value):
        raise ValueError(f"{what} contains invalid characters: {value!r}")


def _require(data: dict, key: str, kind: type, where: str) -> Any:
    value = data.get(key)
    # bool is an int subclass; a size of True is not a size
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ManifestCorruptError(f"{where}: field {key!r} must be {kind.__name__}")
    return value


@dataclass
class VersionEntry:
    """Metadata for one snapshot, as recorded in the manifest."""
    id: str
    timestamp: str
    preview: str
    size: int
    label: Optional[str] = None

    @property
    def created(self) -> datetime:
        return parse_utc_timestamp(self.timestamp)

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "timestamp": self.timestamp,
            "preview": self.preview,
            "size": self.size,
        }
        if self.label:
            d["label"] = self.label
        return d

    @classmethod
    def from_dict(cls, data: Any) -> "VersionEntry":
        if not isinstance(data, dict):
            raise ManifestCorruptError("version entry must be an object")
        label = data.get("label")
        if label is not None and not isinstance(label, str):
            raise ManifestCorruptError("version entry: field 'label' must be str")
        entry = cls(
            id=_require(data, "id", str, "version entry"),
            timestamp=_require(data, "timestamp", str, "version entry"),
            preview=_require(data, "preview", str, "version entry"),
            size=_require(data, "size", int, "version entry"),
            label=label or None,
        )
        if not is_valid_id(entry.id):
            raise ManifestCorruptError(f"version entry: malformed id {entry.id!r}")
        if entry.size < 0:
            raise ManifestCorruptError(f"version entry {entry.id}: negative size")
        try:
            entry.created
        except ValueError as e:
            raise ManifestCorruptError(f"version entry {entry.id}: bad timestamp") from e
        return entry


def sort_newest_first(entries: list[VersionEntry]) -> list[VersionEntry]:
    """Return entries ordered by timestamp, most recent first.

    Equal timestamps fall back to the id, whose random suffix breaks the tie.
    """
    return sorted(entries, key=lambda e: (e.created, e.id), reverse=True)


@dataclass
class VersionManifest:
    """Index of every known snapshot for one document."""
    document_id: str
    collection_id: str
    versions: list[VersionEntry] = field(default_factory=list)
    updated_at: str = field(default_factory=lambda: format_timestamp(utc_now()))

    def touch(self) -> None:
        self.updated_at = format_timestamp(utc_now())

    def find(self, version_id: str) -> Optional[VersionEntry]:
        for entry in self.versions:
            if entry.id == version_id:
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            "documentId": self.document_id,
            "collectionId": self.collection_id,
            "versions": [v.to_dict() for v in self.versions],
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "VersionManifest":
        if not isinstance(data, dict):
            raise ManifestCorruptError("manifest must be an object")
        document_id = _require(data, "documentId", str, "manifest")
        collection_id = _require(data, "collectionId", str, "manifest")
        if not document_id or not collection_id:
            raise ManifestCorruptError("manifest: empty document or collection id")
        versions = _require(data, "versions", list, "manifest")
        updated_at = data.get("updatedAt")
        if not isinstance(updated_at, str):
            updated_at = format_timestamp(utc_now())
        return cls(
            document_id=document_id,
            collection_id=collection_id,
            versions=[VersionEntry.from_dict(v) for v in versions],
            updated_at=updated_at,
        )


@dataclass
class Version(VersionEntry):
    """A snapshot with its content, as served back to callers.

    ``content`` never contains the internal label key.
    """
    content: str = ""
    frontmatter: dict = field(default_factory=dict)
    body: str = ""

    def entry(self) -> VersionEntry:
        return VersionEntry(
            id=self.id,
            timestamp=self.timestamp,
            preview=self.preview,
            size=self.size,
            label=self.label,
        )


@dataclass
class VersionResult:
    """Outcome of a mutating operation. Write paths return this instead of raising."""
    success: bool
    version: Optional[VersionEntry] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, version: Optional[VersionEntry] = None) -> "VersionResult":
        return cls(success=True, version=version)

    @classmethod
    def fail(cls, error: str, kind: ErrorKind) -> "VersionResult":
        return cls(success=False, error=error, error_kind=kind)


@dataclass
class RestoreResult(VersionResult):
    """Outcome of a restore: the restored content and any safety snapshot."""
    content: Optional[str] = None
    safety_snapshot: Optional[VersionEntry] = None
