"""
Shared pytest fixtures for keepsake tests.

Every test gets its own project root under tmp_path and its own
LockManager, so no lock state leaks between tests.
"""

from pathlib import Path

import pytest

from keepsake.api import VersionHistory
from keepsake.config import resolve_config
from keepsake.locking import LockManager
from keepsake.store import VersionStore


@pytest.fixture
def project_root(tmp_path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def config():
    return resolve_config(None)


@pytest.fixture
def locks():
    """Short timeouts so lock tests finish quickly."""
    return LockManager(timeout=2.0, poll_interval=0.01)


@pytest.fixture
def store(locks):
    return VersionStore(locks)


@pytest.fixture
def history(project_root, locks):
    return VersionHistory(project_root, locks=locks)


@pytest.fixture
def doc_dir(project_root, config) -> Path:
    """Storage directory of the blog/doc1 document used throughout the tests."""
    return project_root / config.storage_path / "blog" / "doc1"
