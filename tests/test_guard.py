"""
Unit tests for the single-run guard.
"""

import threading

import pytest

from feed_engine.guard import RunGuard


class TestRunGuard:
    def test_runs_and_returns_value(self):
        guard = RunGuard()
        assert guard.try_run(lambda: 42) == 42
        assert not guard.running

    def test_nested_trigger_is_skipped(self):
        guard = RunGuard()
        inner = []

        def outer():
            assert guard.running
            inner.append(guard.try_run(lambda: "inner"))
            return "outer"

        assert guard.try_run(outer) == "outer"
        assert inner == [None]

    def test_released_after_exception(self):
        guard = RunGuard()

        def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            guard.try_run(fail)
        assert not guard.running
        assert guard.try_run(lambda: "again") == "again"

    def test_concurrent_trigger_returns_immediately(self):
        guard = RunGuard()
        started, release = threading.Event(), threading.Event()
        results = []

        def slow():
            started.set()
            release.wait(5)
            return "slow"

        worker = threading.Thread(target=lambda: results.append(guard.try_run(slow)))
        worker.start()
        assert started.wait(5)

        assert guard.try_run(lambda: "second") is None

        release.set()
        worker.join(5)
        assert results == ["slow"]
        assert not guard.running

    def test_acquire_context(self):
        guard = RunGuard()
        with guard.acquire() as first:
            with guard.acquire() as second:
                assert first is True
                assert second is False
        assert not guard.running
