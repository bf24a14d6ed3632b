"""
Unit tests for the start time registry.
"""
import threading
import time

from tdock.MANAGERS.startup_registry import ReadWriteLock, StartupRegistry


class TestStartupRegistry:
    """Tests for StartupRegistry."""

    def test_register_and_lookup(self):
        registry = StartupRegistry()
        stamp = registry.register("abc", started_at=100.0)
        assert stamp == 100.0
        assert registry.started_at("abc") == 100.0
        assert "abc" in registry

    def test_unknown_id(self):
        registry = StartupRegistry()
        assert registry.started_at("missing") is None
        assert registry.elapsed("missing") is None

    def test_elapsed(self):
        registry = StartupRegistry()
        registry.register("abc", started_at=time.monotonic() - 2)
        assert registry.elapsed("abc") >= 2

    def test_instances_are_isolated(self):
        first, second = StartupRegistry(), StartupRegistry()
        first.register("abc")
        assert "abc" not in second

    def test_concurrent_registration(self):
        registry = StartupRegistry()

        def register(prefix):
            for i in range(200):
                registry.register(f"{prefix}-{i}")
                registry.started_at(f"{prefix}-{i}")

        threads = [threading.Thread(target=register, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(registry) == 8 * 200


class TestReadWriteLock:
    """Tests for ReadWriteLock."""

    def test_readers_share(self):
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=2)
        errors = []

        def reader():
            with lock.read():
                try:
                    inside.wait()
                except threading.BrokenBarrierError as e:
                    errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []

    def test_usable_after_exception(self):
        """Test that an exception while holding the lock releases it."""
        lock = ReadWriteLock()
        try:
            with lock.write():
                raise ValueError("boom")
        except ValueError:
            pass
        with lock.read():
            pass
        with lock.write():
            pass
