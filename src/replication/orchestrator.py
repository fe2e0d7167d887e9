"""
Run orchestration.

Owns the three connections of a run (source, target reader, target writer),
asks the checkpoint controller for the table plan and drives the table
synchronizer over it. Any failure aborts the run: connections are closed
best effort and the error propagates to the caller.
"""

import logging

from utils.metrics import ReplicationMetrics
from utils.tracing import trace_operation

from .checkpoint import CheckpointController
from .config import SyncOptions
from .engine import TableSynchronizer
from .errors import TableNotFoundError
from .models import ROW_ID_COLUMN, RunSummary
from .report import RunReporter
from .stores.base import SourceStore, TargetStore

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Runs one replication pass.

    Example:
        >>> orchestrator = Orchestrator(source, reader, writer, SyncOptions())
        >>> summary = orchestrator.run(process_all=True)
        >>> summary.inserted
        1200
    """

    def __init__(
        self,
        source: SourceStore,
        reader: TargetStore,
        writer: TargetStore,
        options: SyncOptions | None = None,
        reporter: RunReporter | None = None,
        metrics: ReplicationMetrics | None = None,
    ):
        self.source = source
        self.reader = reader
        self.writer = writer
        self.options = options or SyncOptions()
        self.reporter = reporter or RunReporter()
        self.metrics = metrics
        self.checkpoint = CheckpointController(reader, writer)

    def connect(self, include_target: bool = True) -> None:
        self.reporter.notice("Connecting to source")
        self.source.connect()
        if include_target:
            self.reporter.notice("Connecting to target (reader)")
            self.reader.connect()
            self.reporter.notice("Connecting to target (writer)")
            self.writer.connect()

    def close(self) -> None:
        """Close every store; errors are logged, never raised."""
        for store in (self.source, self.reader, self.writer):
            try:
                store.close()
            except Exception as e:
                logger.warning(f"Failed to close {store!r}: {e}")

    def run(
        self,
        table: str | None = None,
        process_all: bool = False,
        create: bool = False,
    ) -> RunSummary:
        """
        Synchronize the planned tables.

        Args:
            table: Only sync this table
            process_all: Start from the first table, ignoring the checkpoint
            create: Recreate every target table and the checkpoint table

        Returns:
            RunSummary with per-table results and totals

        Raises:
            ReplicationError: On the first failure; the checkpoint keeps
                pointing at the table that failed
        """
        summary = RunSummary()
        self.reporter.banner()
        self.reporter.notice(f"Work buffer: {self.options.buffer_size} rows/cycle")

        if table is not None and process_all:
            self.reporter.notice("A single table was requested, ignoring --all")
            process_all = False

        try:
            self.connect()
            with trace_operation("replication_run", table=table or "*", create=create):
                self.checkpoint.ensure(recreate=create)
                source_tables = self.source.list_tables()
                plan = self.checkpoint.plan(source_tables, table=table, process_all=process_all)
                logger.info(f"Planned {len(plan)} of {len(source_tables)} source tables")

                synchronizer = TableSynchronizer(
                    self.source,
                    self.reader,
                    self.writer,
                    self.options,
                    progress=self.reporter.progress,
                    metrics=self.metrics,
                )

                for position, name in enumerate(plan, start=1):
                    self.checkpoint.mark_in_progress(name)
                    self.reporter.table_started(name, position, len(plan))
                    result = synchronizer.sync(name)
                    summary.add(result)
                    self.reporter.table_finished(result)

                self.checkpoint.clear()
        finally:
            self.close()

        summary.finish()
        if self.metrics:
            self.metrics.record_run_finished()
        self.reporter.run_finished(summary)
        return summary

    def remove_row_ids(self, table: str) -> bool:
        """
        Strip the surrogate id column and its constraint from a source table.

        The checkpoint and the target are left untouched.

        Returns:
            True if the column was present and removed
        """
        self.reporter.banner()
        try:
            self.connect(include_target=False)
            with trace_operation("remove_row_ids", table_name=table):
                # Same name form the sync used when it added the column and
                # named its default constraint
                name = table.lower()
                if name not in self.source.list_tables():
                    raise TableNotFoundError(table)

                descriptor = self.source.describe_table(name)
                if not descriptor.has_row_id:
                    self.reporter.notice(f"Table {name} has no {ROW_ID_COLUMN} column")
                    return False

                self.reporter.notice(f"Removing {ROW_ID_COLUMN} from table {name}")
                self.source.drop_row_id_column(name)
                self.reporter.notice(f"{ROW_ID_COLUMN} removed from table {name}")
                return True
        finally:
            self.close()
