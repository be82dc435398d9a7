"""Base classes for feed sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Iterator


class FeedSource(ABC):
    """Abstract base class for something that can stream a feed's raw bytes."""

    name: str

    @abstractmethod
    def open(self, url: str) -> AbstractContextManager[Iterator[bytes]]:
        """Open the feed and yield an iterator of byte chunks; the stream closes on exit."""
        raise NotImplementedError
