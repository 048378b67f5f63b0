"""
Tests for the per-path lock manager.
"""

import asyncio
import logging
import time

import pytest

from keepsake.errors import LockTimeoutError
from keepsake.locking import LockManager


class TestLockManager:

    def test_rejects_non_positive_settings(self):
        with pytest.raises(ValueError):
            LockManager(timeout=0)
        with pytest.raises(ValueError):
            LockManager(poll_interval=-1)

    @pytest.mark.asyncio
    async def test_acquire_and_release(self, tmp_path):
        locks = LockManager(timeout=1.0, poll_interval=0.01)
        release = await locks.acquire(tmp_path / "a")
        assert locks.is_locked(tmp_path / "a")
        release()
        assert not locks.is_locked(tmp_path / "a")
        release()  # second call is harmless
        assert not locks.is_locked(tmp_path / "a")

    @pytest.mark.asyncio
    async def test_relative_and_absolute_paths_share_lock(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        locks = LockManager(timeout=1.0, poll_interval=0.01)
        async with locks.hold("doc"):
            assert locks.is_locked(tmp_path / "doc")

    @pytest.mark.asyncio
    async def test_mutual_exclusion(self, tmp_path):
        """Critical sections on one path never overlap."""
        locks = LockManager(timeout=5.0, poll_interval=0.01)
        active = 0
        peak = 0
        order = []

        async def worker(n):
            nonlocal active, peak
            async with locks.hold(tmp_path / "doc"):
                active += 1
                peak = max(peak, active)
                order.append(n)
                await asyncio.sleep(0.005)
                active -= 1

        await asyncio.gather(*(worker(n) for n in range(10)))
        assert peak == 1
        assert sorted(order) == list(range(10))

    @pytest.mark.asyncio
    async def test_different_paths_independent(self, tmp_path):
        locks = LockManager(timeout=1.0, poll_interval=0.01)
        async with locks.hold(tmp_path / "a"):
            # Would time out if paths shared a lock
            async with locks.hold(tmp_path / "b"):
                assert locks.is_locked(tmp_path / "a")
                assert locks.is_locked(tmp_path / "b")

    @pytest.mark.asyncio
    async def test_waiter_wakes_on_release(self, tmp_path):
        locks = LockManager(timeout=5.0, poll_interval=1.0)
        release = await locks.acquire(tmp_path / "doc")

        async def release_soon():
            await asyncio.sleep(0.01)
            release()

        loop = asyncio.get_running_loop()
        started = loop.time()
        asyncio.ensure_future(release_soon())
        async with locks.hold(tmp_path / "doc"):
            waited = loop.time() - started
        # Woken by the release event, not by the 1s poll
        assert waited < 0.5

    @pytest.mark.asyncio
    async def test_with_lock_returns_result(self, tmp_path):
        locks = LockManager(timeout=1.0, poll_interval=0.01)

        async def work():
            return 42

        assert await locks.with_lock(tmp_path / "doc", work) == 42
        assert not locks.is_locked(tmp_path / "doc")

    @pytest.mark.asyncio
    async def test_released_on_exception(self, tmp_path):
        locks = LockManager(timeout=1.0, poll_interval=0.01)
        with pytest.raises(RuntimeError):
            async with locks.hold(tmp_path / "doc"):
                raise RuntimeError("boom")
        assert not locks.is_locked(tmp_path / "doc")


class TestStaleLocks:
    """A lock held past the timeout is presumed abandoned."""

    @pytest.mark.asyncio
    async def test_stale_lock_force_released(self, tmp_path, caplog):
        locks = LockManager(timeout=0.05, poll_interval=0.01)
        await locks.acquire(tmp_path / "doc")  # never released

        with caplog.at_level(logging.WARNING, logger="keepsake.locking"):
            async with locks.hold(tmp_path / "doc"):
                assert locks.is_locked(tmp_path / "doc")
        assert "stale lock" in caplog.text

    @pytest.mark.asyncio
    async def test_late_release_keeps_successor_lock(self, tmp_path):
        locks = LockManager(timeout=0.05, poll_interval=0.01)
        stale_release = await locks.acquire(tmp_path / "doc")

        successor_release = await locks.acquire(tmp_path / "doc")
        stale_release()
        assert locks.is_locked(tmp_path / "doc")
        successor_release()
        assert not locks.is_locked(tmp_path / "doc")

    @pytest.mark.asyncio
    async def test_timeout_while_holder_stays_live(self, tmp_path):
        """A waiter gives up with LockTimeoutError if the holder never goes stale."""
        locks = LockManager(timeout=0.2, poll_interval=0.01)
        release = await locks.acquire(tmp_path / "doc")
        held = locks._locks[locks._key(tmp_path / "doc")]

        async def keep_fresh():
            while True:
                held.acquired_at = time.monotonic()
                await asyncio.sleep(0.01)

        refresher = asyncio.ensure_future(keep_fresh())
        try:
            with pytest.raises(LockTimeoutError) as exc_info:
                await locks.acquire(tmp_path / "doc")
            assert exc_info.value.timeout == 0.2
        finally:
            refresher.cancel()
            release()
        assert not locks.is_locked(tmp_path / "doc")
