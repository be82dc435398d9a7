"""Error taxonomy for a pipeline run.

Fatal errors (`FetchError`, `ParseError`, `PersistenceError`) terminate the
run. `EnrichmentError` is recovered per item by the rewriter fallback and is
never seen outside of it.
"""

from __future__ import annotations


class FeedEngineError(Exception):
    """Base class for all feed engine errors."""


class FetchError(FeedEngineError):
    """The feed could not be retrieved (network failure or non-2xx status)."""


class ParseError(FeedEngineError):
    """The feed is not well-formed XML."""


class EnrichmentError(FeedEngineError):
    """The AI call failed or returned nothing usable."""


class PersistenceError(FeedEngineError):
    """A batch write failed and was rolled back."""
