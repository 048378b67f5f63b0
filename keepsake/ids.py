"""
Version identifiers.

An id is the creation timestamp in ISO form with colons replaced by hyphens
(so it is a valid filename everywhere), followed by a 4-character random
suffix:

    2024-12-11T10-30-00.123456Z-a1b2

Ids sort lexicographically in creation order. Older stores used millisecond
precision and no suffix; both are still parsed.
"""

import re
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

SUFFIX_LENGTH = 4
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

_ID_RE = re.compile(
    r'^(\d{4}-\d{2}-\d{2})T(\d{2})-(\d{2})-(\d{2})\.(\d{3}|\d{6})Z'
    r'(?:-[a-z0-9]{4})?$'
)

# Last timestamp handed out by new_version_id(); see the monotonic bump below.
_last_issued: Optional[datetime] = None


def _suffix() -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))


def format_id(ts: datetime, suffix: Optional[str] = None) -> str:
    """Build a version id for ``ts`` (UTC)."""
    ts = ts.astimezone(timezone.utc)
    stamp = ts.strftime("%Y-%m-%dT%H-%M-%S.%fZ")
    return f"{stamp}-{suffix if suffix is not None else _suffix()}"


def new_version_id(now: Optional[datetime] = None) -> tuple[str, datetime]:
    """Generate a fresh (id, timestamp) pair.

    Timestamps handed out by one process strictly increase: if the clock
    has not advanced past the previous id (same microsecond, or a step
    backwards) the new timestamp is the previous one plus 1µs.
    """
    global _last_issued
    ts = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    if _last_issued is not None and ts <= _last_issued:
        ts = _last_issued + timedelta(microseconds=1)
    _last_issued = ts
    return format_id(ts), ts


def generate_id(now: Optional[datetime] = None) -> str:
    """Generate a sortable, collision-resistant version id."""
    return new_version_id(now)[0]


def parse_id(version_id: str) -> Optional[datetime]:
    """Recover the creation timestamp from a version id.

    Returns None for anything that is not a well-formed id; callers scanning
    a directory skip such files.
    """
    if not isinstance(version_id, str):
        return None
    m = _ID_RE.match(version_id)
    if not m:
        return None
    date, hh, mm, ss, frac = m.groups()
    try:
        return datetime.fromisoformat(
            f"{date}T{hh}:{mm}:{ss}.{frac.ljust(6, '0')}+00:00"
        )
    except ValueError:
        return None


def is_valid_id(version_id: str) -> bool:
    """True if ``version_id`` is safe to turn into a snapshot filename."""
    return parse_id(version_id) is not None
