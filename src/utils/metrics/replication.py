"""
Metrics for table replication runs.

Tracks rows applied to the target by operation, per-table sync outcomes
and durations, and the time of the last completed run.
"""

import logging
import time

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from .registry import get_or_create_metric

logger = logging.getLogger(__name__)

OPERATIONS = ("insert", "update", "delete")


class ReplicationMetrics:
    """Prometheus metrics for the sync engine and orchestrator."""

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize replication metrics

        Args:
            registry: Custom Prometheus registry (default: global REGISTRY)
        """
        self.registry = registry or REGISTRY

        self.rows_applied_total = get_or_create_metric(
            lambda: Counter(
                "replication_rows_applied_total",
                "Rows written to the target, by operation",
                ["table_name", "operation"],
                registry=self.registry,
            ),
            "replication_rows_applied",
            self.registry,
        )

        self.table_syncs_total = get_or_create_metric(
            lambda: Counter(
                "replication_table_syncs_total",
                "Table syncs by outcome",
                ["table_name", "status"],
                registry=self.registry,
            ),
            "replication_table_syncs",
            self.registry,
        )

        self.table_sync_duration_seconds = get_or_create_metric(
            lambda: Histogram(
                "replication_table_sync_duration_seconds",
                "Duration of one table sync in seconds",
                ["table_name"],
                buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800, 3600),
                registry=self.registry,
            ),
            "replication_table_sync_duration_seconds",
            self.registry,
        )

        self.source_rows = get_or_create_metric(
            lambda: Gauge(
                "replication_source_rows",
                "Source row count seen by the last sync of a table",
                ["table_name"],
                registry=self.registry,
            ),
            "replication_source_rows",
            self.registry,
        )

        self.last_run_timestamp = get_or_create_metric(
            lambda: Gauge(
                "replication_last_run_timestamp",
                "Unix time of the last completed run",
                registry=self.registry,
            ),
            "replication_last_run_timestamp",
            self.registry,
        )

    def record_operation(self, table_name: str, operation: str, count: int = 1) -> None:
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        self.rows_applied_total.labels(table_name=table_name, operation=operation).inc(count)

    def record_table_sync(
        self, table_name: str, success: bool, duration: float, source_rows: int | None = None
    ) -> None:
        """
        Record the outcome of one table sync.

        Args:
            table_name: Table that was synced
            success: Whether the sync completed
            duration: Wall time in seconds
            source_rows: Source row count, when known
        """
        status = "success" if success else "failed"
        self.table_syncs_total.labels(table_name=table_name, status=status).inc()
        self.table_sync_duration_seconds.labels(table_name=table_name).observe(duration)
        if source_rows is not None:
            self.source_rows.labels(table_name=table_name).set(source_rows)
        logger.debug(f"Recorded table sync: {table_name} status={status} duration={duration:.2f}s")

    def record_run_finished(self) -> None:
        self.last_run_timestamp.set(time.time())
