"""
Sync engine.

- BufferedWindow: chunked, paginated reader over an ordered result set
- TableSynchronizer: per-table pre-steps and the merge-join diff
"""

from .synchronizer import ProgressCallback, TableSynchronizer
from .window import BufferedWindow

__all__ = [
    "BufferedWindow",
    "TableSynchronizer",
    "ProgressCallback",
]
