"""
Configuration for version history.

Three settings, all optional:

    enabled       turn history on or off (default: true)
    max_versions  unlabeled snapshots kept per document (default: 20)
    storage_path  directory under the project root (default: .versions)

Partial settings are merged onto the defaults by ``resolve_config``. A
project can also persist them in ``keepsake.toml`` at its root:

    [history]
    enabled = true
    max_versions = 50
    storage_path = ".versions"
"""

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePath
from typing import Any, Mapping, Optional, Union

import tomli_w

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "keepsake.toml"
CONFIG_SECTION = "history"


@dataclass(frozen=True)
class VersionHistoryConfig:
    """Fully resolved version history settings."""
    enabled: bool = True
    max_versions: int = 20
    storage_path: str = ".versions"


DEFAULT_CONFIG = VersionHistoryConfig()

PartialConfig = Union[VersionHistoryConfig, Mapping[str, Any], None]

# Accept the camelCase spelling used by JSON callers
_KEY_ALIASES = {
    "enabled": "enabled",
    "max_versions": "max_versions",
    "maxVersions": "max_versions",
    "storage_path": "storage_path",
    "storagePath": "storage_path",
}


def _validate(config: VersionHistoryConfig) -> VersionHistoryConfig:
    if not isinstance(config.enabled, bool):
        raise ConfigError(f"enabled must be a boolean, got {config.enabled!r}")
    if isinstance(config.max_versions, bool) or not isinstance(config.max_versions, int):
        raise ConfigError(f"max_versions must be an integer, got {config.max_versions!r}")
    if config.max_versions < 0:
        raise ConfigError(f"max_versions must be >= 0, got {config.max_versions}")
    if not isinstance(config.storage_path, str) or not config.storage_path.strip():
        raise ConfigError("storage_path must be a non-empty string")
    parts = PurePath(config.storage_path)
    if parts.is_absolute() or ".." in parts.parts:
        raise ConfigError(
            f"storage_path must stay inside the project root: {config.storage_path!r}"
        )
    return config


def resolve_config(partial: PartialConfig = None) -> VersionHistoryConfig:
    """
    Merge partial settings onto the defaults.

    Args:
        partial: None, a VersionHistoryConfig, or a mapping with any subset
            of the settings (snake_case or camelCase keys). None values
            fall back to the default.

    Raises:
        ConfigError: On unknown keys or invalid values
    """
    if partial is None:
        return DEFAULT_CONFIG
    if isinstance(partial, VersionHistoryConfig):
        return _validate(partial)

    overrides: dict[str, Any] = {}
    for key, value in partial.items():
        name = _KEY_ALIASES.get(key)
        if name is None:
            raise ConfigError(f"Unknown history setting: {key!r}")
        if value is not None:
            overrides[name] = value
    return _validate(replace(DEFAULT_CONFIG, **overrides))


def is_enabled(partial: PartialConfig = None) -> bool:
    """Check if version history is enabled once defaults are applied."""
    return resolve_config(partial).enabled


# -----------------------------------------------------------------------------
# Config file
# -----------------------------------------------------------------------------

@dataclass
class LoadConfigResult:
    """Outcome of reading a project's config file."""
    config: VersionHistoryConfig
    config_path: Optional[Path] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def has_config_file(self) -> bool:
        return self.config_path is not None


def find_config_file(project_root: Path) -> Optional[Path]:
    """Return the project's config file if it exists."""
    path = Path(project_root) / CONFIG_FILENAME
    return path if path.is_file() else None


def load_config(project_root: Path) -> LoadConfigResult:
    """
    Load history settings from ``keepsake.toml`` in the project root.

    A missing file yields the defaults. An unreadable or invalid file also
    yields the defaults, with the problem reported in ``warnings``, so a
    bad config never blocks editing.
    """
    config_path = find_config_file(project_root)
    if config_path is None:
        return LoadConfigResult(config=DEFAULT_CONFIG)

    warnings: list[str] = []
    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
        section = data.get(CONFIG_SECTION, {})
        if not isinstance(section, dict):
            raise ConfigError(f"[{CONFIG_SECTION}] must be a table")
        config = resolve_config(section)
    except (OSError, tomllib.TOMLDecodeError, ConfigError) as e:
        msg = f"Failed to load {config_path}: {e}. Using defaults."
        logger.warning(msg)
        warnings.append(msg)
        config = DEFAULT_CONFIG

    return LoadConfigResult(config=config, config_path=config_path, warnings=warnings)


def save_config(project_root: Path, config: VersionHistoryConfig) -> Path:
    """
    Write history settings to ``keepsake.toml``, preserving other tables.

    Returns:
        Path to the config file
    """
    config = _validate(config)
    project_root = Path(project_root)
    project_root.mkdir(parents=True, exist_ok=True)
    config_path = project_root / CONFIG_FILENAME

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)

    data[CONFIG_SECTION] = {
        "enabled": config.enabled,
        "max_versions": config.max_versions,
        "storage_path": config.storage_path,
    }
    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
    return config_path
