"""Feed engine package.

The package ingests one large XML job feed into a local job board database:
- `sources/` fetches the raw feed as a byte stream.
- `assembler.py` turns that stream into feed items without loading it whole.
- `normalize.py` and `metadata.py` hold the deterministic heuristics.
- `rewriter.py` produces the final description (AI or template).
- `storage.py` owns the schema and the batched, idempotent writes.
- `pipeline.py` wires a run together behind a single-run guard.
"""

from .config import Settings
from .models import ManualPosting, NormalizedJob, RawFeedItem, RunResult, RunStats
from .pipeline import FeedPipeline

__all__ = [
    "FeedPipeline",
    "ManualPosting",
    "NormalizedJob",
    "RawFeedItem",
    "RunResult",
    "RunStats",
    "Settings",
]
