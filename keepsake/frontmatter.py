"""
YAML frontmatter handling for snapshot files.

Snapshots are stored as written, with one addition: a labeled snapshot
carries its label under a reserved frontmatter key. That makes the label
recoverable from the file alone if the manifest is lost. The key is removed
again before content is handed back to callers.
"""

import re
from typing import Any, Optional

import yaml

PREVIEW_MAX_LENGTH = 100

# Reserved frontmatter key for snapshot labels (underscore-prefixed to stay
# out of the way of user keys)
LABEL_KEY = "_keepsake_label"

_FRONTMATTER_RE = re.compile(
    r'\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)',
    re.DOTALL,
)


def split_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """
    Split content into (frontmatter, body).

    Content without a frontmatter block returns ``({}, content)``.

    Raises:
        ValueError: If the block is not valid YAML or is not a mapping
    """
    m = _FRONTMATTER_RE.match(content)
    if not m:
        return {}, content
    try:
        data = yaml.safe_load(m.group(1) or "")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid frontmatter: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Frontmatter must be a mapping")
    return data, content[m.end():]


def join_frontmatter(data: dict[str, Any], body: str) -> str:
    """Render frontmatter and body back into a single document.

    Inverse of ``split_frontmatter``: the body comes back byte-for-byte.
    """
    header = yaml.safe_dump(
        data, sort_keys=False, allow_unicode=True, default_flow_style=False,
    )
    return f"---\n{header}---\n{body}"


def generate_preview(content: str) -> str:
    """First PREVIEW_MAX_LENGTH characters of the body, frontmatter removed."""
    try:
        _, body = split_frontmatter(content)
    except ValueError:
        body = content
    return body.strip()[:PREVIEW_MAX_LENGTH]


def inject_label(content: str, label: str) -> str:
    """Store ``label`` in the frontmatter, creating the block if needed."""
    try:
        data, body = split_frontmatter(content)
    except ValueError:
        # Leave the unparseable block alone; it becomes part of the body
        return join_frontmatter({LABEL_KEY: label}, content)
    data = {**data, LABEL_KEY: label}
    return join_frontmatter(data, body)


def extract_label(content: str) -> Optional[str]:
    """Label embedded by ``inject_label``, if any."""
    try:
        data, _ = split_frontmatter(content)
    except ValueError:
        return None
    label = data.get(LABEL_KEY)
    return label if isinstance(label, str) else None


def strip_label(content: str) -> str:
    """Remove the reserved label key from content served to callers."""
    try:
        data, body = split_frontmatter(content)
    except ValueError:
        return content
    if LABEL_KEY not in data:
        return content
    data = {k: v for k, v in data.items() if k != LABEL_KEY}
    if not data:
        return body
    return join_frontmatter(data, body)
