"""
Buffered windows over ordered result sets.

A window exposes one current row at a time and refills itself from its
cursor in chunks of ``buffer_size`` rows. Source windows are paginated: when
a page runs dry the window asks ``reopen`` for the next page, starting after
the last surrogate id it handed out.
"""

import logging
from collections.abc import Callable

from ..models import ROW_ID_COLUMN, Row
from ..stores.base import ResultCursor, StoreAdapter

logger = logging.getLogger(__name__)

Reopen = Callable[[int], ResultCursor]


class BufferedWindow:
    """Sequential reader over one store's ordered rows."""

    def __init__(
        self,
        store: StoreAdapter,
        cursor: ResultCursor,
        buffer_size: int,
        reopen: Reopen | None = None,
        after_id: int = 0,
        label: str = "window",
    ):
        """
        Args:
            store: Store the cursor belongs to
            cursor: Open result set ordered ascending by surrogate id
            buffer_size: Rows fetched per refill
            reopen: Opens the next page given the last consumed id; None for
                a single unpaginated result set
            after_id: Surrogate id the first page starts after
            label: Name used in log messages
        """
        if buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        self.store = store
        self.cursor = cursor
        self.buffer_size = buffer_size
        self.reopen = reopen
        self.label = label
        self.last_id = after_id
        self.fetches = 0
        self.pages = 1
        self._rows: list[Row] = []
        self._pos = 0
        self._page_rows = 0
        self._exhausted = False

    @property
    def current(self) -> Row | None:
        """Row at the read position, or None once every row was consumed."""
        if self._pos >= len(self._rows):
            self._refill()
        if self._exhausted:
            return None
        return self._rows[self._pos]

    @property
    def current_id(self) -> int | None:
        row = self.current
        return None if row is None else int(row[ROW_ID_COLUMN])

    @property
    def exhausted(self) -> bool:
        return self.current is None

    def advance(self) -> None:
        """Move past the current row."""
        row = self.current
        if row is None:
            raise IndexError(f"{self.label}: advance past the end")
        self.last_id = int(row[ROW_ID_COLUMN])
        self._pos += 1

    def _refill(self) -> None:
        while not self._exhausted and self._pos >= len(self._rows):
            rows = self.store.fetch_next(self.cursor, self.buffer_size)
            self.fetches += 1
            if rows:
                self._rows = rows
                self._pos = 0
                self._page_rows += len(rows)
                continue

            # Current result set is drained
            if self.reopen is None or self._page_rows == 0:
                self._exhausted = True
                self._rows = []
                self._pos = 0
                logger.debug(f"{self.label}: exhausted after {self.fetches} fetches")
                return

            logger.debug(f"{self.label}: opening page {self.pages + 1} after id {self.last_id}")
            self.cursor = self.reopen(self.last_id)
            self.pages += 1
            self._page_rows = 0

    def close(self) -> None:
        """Release the underlying cursor if it is still open."""
        if not self.cursor.closed:
            self.cursor.close()
        self._exhausted = True
