"""
Unit tests for exactly-once teardown.
"""
import asyncio
import threading

import pytest

from tdock.exceptions import EngineLaunchError, TeardownError
from tdock.MANAGERS.lifecycle_guard import LifecycleGuard, Teardown


class RecordingRunner:
    """Runner stub recording teardown requests."""

    def __init__(self, error=None):
        self.calls = []
        self.error = error
        self._lock = threading.Lock()

    async def _record(self, verb, container_id):
        with self._lock:
            self.calls.append((verb, container_id))
        await asyncio.sleep(0.01)
        if self.error is not None:
            raise self.error

    async def rm(self, container_id):
        await self._record("rm", container_id)

    async def stop(self, container_id):
        await self._record("stop", container_id)


@pytest.fixture(autouse=True)
def no_keep_containers(monkeypatch):
    monkeypatch.delenv("KEEP_CONTAINERS", raising=False)


class TestLifecycleGuard:
    """Tests for LifecycleGuard."""

    def test_removes_by_default(self):
        runner = RecordingRunner()
        guard = LifecycleGuard("abc", runner)
        assert asyncio.run(guard.release()) is Teardown.REMOVED
        assert runner.calls == [("rm", "abc")]

    def test_keep_containers_stops(self, monkeypatch):
        monkeypatch.setenv("KEEP_CONTAINERS", "true")
        runner = RecordingRunner()
        assert asyncio.run(LifecycleGuard("abc", runner).release()) is Teardown.STOPPED
        assert runner.calls == [("stop", "abc")]

    @pytest.mark.parametrize("value", ["false", "1", "yes", ""])
    def test_other_values_remove(self, monkeypatch, value):
        monkeypatch.setenv("KEEP_CONTAINERS", value)
        runner = RecordingRunner()
        asyncio.run(LifecycleGuard("abc", runner).release())
        assert runner.calls == [("rm", "abc")]

    def test_environment_read_at_release(self, monkeypatch):
        """Test that the toggle is evaluated when the container is disposed."""
        runner = RecordingRunner()
        guard = LifecycleGuard("abc", runner)
        monkeypatch.setenv("KEEP_CONTAINERS", "TRUE")
        asyncio.run(guard.release())
        assert runner.calls == [("stop", "abc")]

    def test_explicit_override(self, monkeypatch):
        monkeypatch.setenv("KEEP_CONTAINERS", "true")
        runner = RecordingRunner()
        asyncio.run(LifecycleGuard("abc", runner, keep_containers=False).release())
        assert runner.calls == [("rm", "abc")]

    def test_repeated_release(self):
        runner = RecordingRunner()
        guard = LifecycleGuard("abc", runner)

        async def release_three_times():
            return [await guard.release() for _ in range(3)]

        assert asyncio.run(release_three_times()) == [Teardown.REMOVED, None, None]
        assert runner.calls == [("rm", "abc")]
        assert guard.released

    def test_concurrent_release_in_one_loop(self):
        runner = RecordingRunner()
        guard = LifecycleGuard("abc", runner)

        async def release_concurrently():
            return await asyncio.gather(*(guard.release() for _ in range(10)))

        outcomes = asyncio.run(release_concurrently())
        assert outcomes.count(Teardown.REMOVED) == 1
        assert len(runner.calls) == 1

    def test_concurrent_release_from_threads(self):
        runner = RecordingRunner()
        guard = LifecycleGuard("abc", runner)
        barrier = threading.Barrier(8)

        def release():
            barrier.wait()
            asyncio.run(guard.release())

        threads = [threading.Thread(target=release) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert runner.calls == [("rm", "abc")]

    @pytest.mark.parametrize("error", [
        TeardownError("No such container"),
        EngineLaunchError(["docker", "rm"], FileNotFoundError("docker")),
        OSError("pipe closed"),
    ])
    def test_failures_are_not_raised(self, error):
        runner = RecordingRunner(error=error)
        guard = LifecycleGuard("abc", runner)
        assert asyncio.run(guard.release()) is Teardown.REMOVED
        assert asyncio.run(guard.release()) is None
        assert len(runner.calls) == 1
