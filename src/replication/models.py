"""
Data model shared by the replication components.

Descriptors are read fresh from the source catalog on every run and never
persisted. Counters are scoped to one table sync and aggregated by the
orchestrator into a RunSummary.
"""

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# Reserved column injected into every source table (and mirrored as the
# target primary key). Zero means "not assigned yet".
ROW_ID_COLUMN = "_mirror_row_id"

# Reserved target column holding the content hash of the mirrored row.
HASH_COLUMN = "_mirror_row_hash"
HASH_LENGTH = 64

CHECKPOINT_TABLE = "_mirror_checkpoint"

Row = dict[str, Any]


@dataclass(frozen=True)
class ColumnDescriptor:
    """One source column as reported by the catalog."""

    name: str
    type_id: int
    length: int = 0
    scale: int = 0
    is_nullable: bool = False


@dataclass(frozen=True)
class TableDescriptor:
    """A source table and its columns in catalog order."""

    name: str
    columns: tuple[ColumnDescriptor, ...] = ()

    def has_column(self, name: str) -> bool:
        return any(col.name.lower() == name.lower() for col in self.columns)

    @property
    def has_row_id(self) -> bool:
        return self.has_column(ROW_ID_COLUMN)


@dataclass(frozen=True)
class IndexDescriptor:
    """A source index, mirrored on the target when the table is created."""

    name: str
    columns: tuple[str, ...]


@dataclass
class CheckpointRecord:
    """Singleton resume marker stored in the target."""

    on_process: str = ""
    last_update: datetime | None = None

    @property
    def interrupted(self) -> bool:
        return bool(self.on_process)


@dataclass
class SyncCounters:
    """Running counters for one table sync."""

    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    processed: int = 0

    def percent_of(self, total: int) -> int:
        """Share of ``total`` already processed, as an integer percentage."""
        if total <= 0:
            return 100
        return int(self.processed * 100 / total)

    @property
    def changes(self) -> int:
        return self.inserted + self.updated + self.deleted


@dataclass
class TableSyncResult:
    """Outcome of one table sync."""

    table: str
    source_rows: int
    counters: SyncCounters
    created: bool = False
    reset: bool = False
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "source_rows": self.source_rows,
            "inserted": self.counters.inserted,
            "updated": self.counters.updated,
            "deleted": self.counters.deleted,
            "processed": self.counters.processed,
            "created": self.created,
            "reset": self.reset,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class RunSummary:
    """Totals for a whole run, built from the per-table results."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    tables: list[TableSyncResult] = field(default_factory=list)
    _clock_start: float = field(default_factory=time.monotonic, repr=False)

    def add(self, result: TableSyncResult) -> None:
        self.tables.append(result)

    def finish(self) -> None:
        self.finished_at = datetime.now(UTC)

    @property
    def inserted(self) -> int:
        return sum(r.counters.inserted for r in self.tables)

    @property
    def updated(self) -> int:
        return sum(r.counters.updated for r in self.tables)

    @property
    def deleted(self) -> int:
        return sum(r.counters.deleted for r in self.tables)

    @property
    def processed(self) -> int:
        return sum(r.counters.processed for r in self.tables)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self._clock_start

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "total_tables": len(self.tables),
            "inserted": self.inserted,
            "updated": self.updated,
            "deleted": self.deleted,
            "processed": self.processed,
            "tables": [r.to_dict() for r in self.tables],
        }
