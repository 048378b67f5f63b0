"""
In-process locks keyed by storage path.

Every manifest-mutating operation (save, delete, clear, prune) runs under
the lock for its document's storage directory, so two saves cannot
interleave their read-modify-write of ``manifest.json``. Locks for
different paths are independent.

A waiter sleeps on the holder's release event and wakes every
``poll_interval`` to check two deadlines:

- the holder has held the lock longer than ``timeout``: it is presumed
  abandoned, force-released with a warning, and the waiter proceeds
  without checking whether the abandoned operation ever finished;
- the waiter itself has waited longer than ``timeout``: ``LockTimeoutError``.

Locks are not shared across processes. Create one ``LockManager`` per
process and pass it to every store that touches the same files.
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, TypeVar, Union

from .errors import LockTimeoutError

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS = 30.0
LOCK_POLL_SECONDS = 0.05

T = TypeVar("T")
PathLike = Union[str, "os.PathLike[str]"]


@dataclass
class _HeldLock:
    released: asyncio.Event = field(default_factory=asyncio.Event)
    acquired_at: float = field(default_factory=time.monotonic)


class LockManager:
    """Mutual exclusion per storage path for cooperative asyncio tasks."""

    def __init__(
        self,
        timeout: float = LOCK_TIMEOUT_SECONDS,
        poll_interval: float = LOCK_POLL_SECONDS,
    ):
        if timeout <= 0 or poll_interval <= 0:
            raise ValueError("timeout and poll_interval must be positive")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._locks: dict[str, _HeldLock] = {}

    @staticmethod
    def _key(path: PathLike) -> str:
        return os.path.abspath(os.fspath(path))

    def is_locked(self, path: PathLike) -> bool:
        return self._key(path) in self._locks

    async def acquire(self, path: PathLike) -> Callable[[], None]:
        """
        Wait for exclusive access to ``path``.

        Returns:
            A release callable. Calling it more than once is harmless.

        Raises:
            LockTimeoutError: If the wait exceeds ``timeout``
        """
        key = self._key(path)
        started = time.monotonic()

        while key in self._locks:
            held = self._locks[key]
            now = time.monotonic()
            held_for = now - held.acquired_at

            if held_for > self.timeout:
                logger.warning(
                    "Releasing stale lock for %s (held for %.1fs)", key, held_for
                )
                held.released.set()
                del self._locks[key]
                break

            if now - started > self.timeout:
                raise LockTimeoutError(key, self.timeout)

            try:
                await asyncio.wait_for(held.released.wait(), self.poll_interval)
            except asyncio.TimeoutError:
                pass

        held = _HeldLock()
        self._locks[key] = held

        def release() -> None:
            held.released.set()
            # A stale holder released late must not drop its successor's lock
            if self._locks.get(key) is held:
                del self._locks[key]

        return release

    @asynccontextmanager
    async def hold(self, path: PathLike) -> AsyncIterator[None]:
        """``async with locks.hold(path):`` runs the block with the lock held."""
        release = await self.acquire(path)
        try:
            yield
        finally:
            release()

    async def with_lock(self, path: PathLike, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn()`` with exclusive access to ``path`` and return its result."""
        async with self.hold(path):
            return await fn()
