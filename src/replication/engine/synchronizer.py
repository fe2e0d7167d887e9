"""
Table synchronizer: per-table pre-steps and the merge-join diff.

Both sides are read in ascending surrogate id order. The source window
streams full rows from SQL Server page by page; the target window streams
(id, hash) pairs on the reader connection while the writer connection
applies the resulting INSERT / UPDATE / DELETE statements one at a time.
"""

import logging
import time
from collections.abc import Callable

from opentelemetry import trace

from utils.logging import ContextLogger
from utils.metrics import ReplicationMetrics
from utils.tracing import add_span_attributes, add_span_event, trace_operation

from ..codec import project_values, row_hash, valid_fields
from ..config import SyncOptions
from ..models import HASH_COLUMN, ROW_ID_COLUMN, SyncCounters, TableDescriptor, TableSyncResult
from ..schema import build_create_index, build_create_table, mirrorable_indexes
from ..stores.base import SourceStore, TargetStore
from .window import BufferedWindow

logger = logging.getLogger(__name__)

# (table name, running counters, percent of source rows processed)
ProgressCallback = Callable[[str, SyncCounters, int], None]


class TableSynchronizer:
    """
    Converges one target table onto its source table.

    Example:
        >>> sync = TableSynchronizer(source, reader, writer, SyncOptions())
        >>> result = sync.sync("orders")
        >>> result.counters.inserted
        42
    """

    def __init__(
        self,
        source: SourceStore,
        reader: TargetStore,
        writer: TargetStore,
        options: SyncOptions | None = None,
        progress: ProgressCallback | None = None,
        metrics: ReplicationMetrics | None = None,
    ):
        """
        Args:
            source: Source store
            reader: Target connection holding the (id, hash) result set
            writer: Target connection used for DDL and DML
            options: Buffer, page and creation options
            progress: Called after every emitted operation
            metrics: Prometheus metrics sink; nothing is recorded when None
        """
        self.source = source
        self.reader = reader
        self.writer = writer
        self.options = options or SyncOptions()
        self.progress = progress
        self.metrics = metrics

    def sync(self, table_name: str) -> TableSyncResult:
        """
        Synchronize one table.

        Args:
            table_name: Source table; the target table has the same name

        Returns:
            TableSyncResult with the counters of this table only

        Raises:
            ReplicationError: Any store or schema failure; the table is left
                partially converged and the next run picks it up again
        """
        log = ContextLogger(__name__, table_name=table_name)
        started = time.monotonic()

        with trace_operation("sync_table", table_name=table_name) as span:
            try:
                result = self._sync(table_name, log)
            except Exception as e:
                duration = time.monotonic() - started
                log.error(f"Table {table_name} sync failed after {duration:.2f}s: {e}", duration=duration)
                if self.metrics:
                    self.metrics.record_table_sync(table_name, success=False, duration=duration)
                raise

            result.duration_seconds = time.monotonic() - started
            span.set_attribute("rows_inserted", result.counters.inserted)
            span.set_attribute("rows_updated", result.counters.updated)
            span.set_attribute("rows_deleted", result.counters.deleted)

        if self.metrics:
            self.metrics.record_table_sync(
                table_name,
                success=True,
                duration=result.duration_seconds,
                source_rows=result.source_rows,
            )

        log.info(
            f"Table {table_name} synced: {result.counters.inserted} inserted, "
            f"{result.counters.updated} updated, {result.counters.deleted} deleted "
            f"in {result.duration_seconds:.2f}s",
            rows_inserted=result.counters.inserted,
            rows_updated=result.counters.updated,
            rows_deleted=result.counters.deleted,
            duration=result.duration_seconds,
        )
        return result

    def _sync(self, table_name: str, log: ContextLogger) -> TableSyncResult:
        table, reset_target = self._prepare_source(table_name, log)
        fields = valid_fields(table)
        total = self.source.count_rows(table_name)
        add_span_attributes(source_rows=total, field_count=len(fields))
        if total == 0:
            log.info(f"Source table {table_name} is empty")

        must_create = self.options.force_create or not self.writer.table_exists(table_name)
        indexes = self.source.list_indexes(table_name) if must_create else []

        source_window = self._open_source_window(table_name, fields)
        try:
            created = False
            if must_create:
                self._create_target(table, indexes, log)
                created = True
                reset_target = False

            if reset_target:
                log.info(f"Source ids were regenerated, clearing target table {table_name}")
                self.writer.delete_all(table_name)

            target_window = BufferedWindow(
                self.reader,
                self.reader.open_hash_cursor(table_name),
                self.options.buffer_size,
                label=f"target:{table_name}",
            )
            try:
                counters = self._merge(table_name, fields, total, source_window, target_window)
            finally:
                target_window.close()
        finally:
            source_window.close()

        return TableSyncResult(
            table=table_name,
            source_rows=total,
            counters=counters,
            created=created,
            reset=reset_target,
        )

    def _prepare_source(self, table_name: str, log: ContextLogger) -> tuple[TableDescriptor, bool]:
        """Ensure every source row carries a surrogate id."""
        with trace_operation("prepare_source", table_name=table_name):
            table = self.source.describe_table(table_name)
            reset_target = False
            if not table.has_row_id:
                log.info(f"Adding {ROW_ID_COLUMN} to source table {table_name}")
                self.source.add_row_id_column(table_name)
                reset_target = True

            assigned = self.source.backfill_row_ids(table_name)
            if assigned:
                add_span_event("row_ids_assigned", count=assigned)
        return table, reset_target

    def _open_source_window(self, table_name: str, fields: tuple[str, ...]) -> BufferedWindow:
        page_size = self.options.page_size

        def reopen(after_id: int):
            return self.source.open_row_cursor(table_name, fields, after_id, page_size)

        return BufferedWindow(
            self.source,
            reopen(0),
            self.options.buffer_size,
            reopen=reopen,
            label=f"source:{table_name}",
        )

    def _create_target(self, table: TableDescriptor, indexes, log: ContextLogger) -> None:
        """
        Create (or recreate) the target table and its mirrored indexes.

        The DDL is built in full before anything is executed, so an unknown
        column type leaves the target untouched.
        """
        dialect = self.writer.dialect
        with trace_operation("create_target", table_name=table.name):
            ddl = build_create_table(table, dialect)
            index_ddl = [
                build_create_index(table.name, index, dialect)
                for index in mirrorable_indexes(table, indexes)
            ]

            if self.writer.table_exists(table.name):
                log.info(f"Dropping target table {table.name}")
                self.writer.drop_table(table.name)

            self.writer.create_table(ddl)
            for statement in index_ddl:
                self.writer.create_index(statement)

        log.info(f"Created target table {table.name} with {len(index_ddl)} indexes")

    def _merge(
        self,
        table_name: str,
        fields: tuple[str, ...],
        total: int,
        source: BufferedWindow,
        target: BufferedWindow,
    ) -> SyncCounters:
        """
        Merge-join the source rows against the target (id, hash) pairs.

        When ids differ the target row is deleted and only the target side
        advances; a source row whose id is below the target's current id is
        then inserted once the target side has moved past it.
        """
        counters = SyncCounters()
        writer = self.writer

        with trace_operation("merge_rows", kind=trace.SpanKind.INTERNAL, table_name=table_name):
            while True:
                src = source.current
                tgt = target.current
                if src is None and tgt is None:
                    break

                if src is not None and tgt is not None:
                    src_id = int(src[ROW_ID_COLUMN])
                    tgt_id = int(tgt[ROW_ID_COLUMN])
                    if src_id == tgt_id:
                        new_hash = row_hash(src)
                        changed = new_hash != tgt[HASH_COLUMN]
                        if changed:
                            writer.update_row(
                                table_name, src_id, new_hash, fields, project_values(src, fields)
                            )
                            counters.updated += 1
                        source.advance()
                        target.advance()
                        counters.processed += 1
                        if changed:
                            self._emitted(table_name, "update", counters, total)
                    else:
                        writer.delete_row(table_name, tgt_id)
                        counters.deleted += 1
                        target.advance()
                        self._emitted(table_name, "delete", counters, total)

                elif src is None:
                    writer.delete_row(table_name, int(tgt[ROW_ID_COLUMN]))
                    counters.deleted += 1
                    target.advance()
                    self._emitted(table_name, "delete", counters, total)

                else:
                    src_id = int(src[ROW_ID_COLUMN])
                    writer.insert_row(
                        table_name, src_id, row_hash(src), fields, project_values(src, fields)
                    )
                    counters.inserted += 1
                    counters.processed += 1
                    source.advance()
                    self._emitted(table_name, "insert", counters, total)

            add_span_attributes(source_fetches=source.fetches, source_pages=source.pages)

        return counters

    def _emitted(self, table_name: str, operation: str, counters: SyncCounters, total: int) -> None:
        if self.metrics:
            self.metrics.record_operation(table_name, operation)
        if self.progress:
            self.progress(table_name, counters, counters.percent_of(total))
