"""Exclusive-execution gate for pipeline runs."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RunGuard:
    """Single-permit gate: at most one run at a time, losers return immediately.

    There is no queueing. A trigger that finds a run in progress is a no-op.
    """

    def __init__(self, name: str = "feed") -> None:
        self.name = name
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def acquire(self) -> Iterator[bool]:
        """Yield True if the permit was taken; it is released on every exit path."""
        acquired = self._lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()

    def try_run(self, run_fn: Callable[[], T]) -> Optional[T]:
        """Call `run_fn` unless a run is already active; returns None when skipped."""
        with self.acquire() as acquired:
            if not acquired:
                logger.info(f"[guard] {self.name} run already in progress, skipping")
                return None
            return run_fn()
