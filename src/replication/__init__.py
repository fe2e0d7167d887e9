"""
One-way table replication from SQL Server to MySQL or PostgreSQL.

Rows are matched through a surrogate id injected into every source table and
compared through a content hash stored next to each mirrored row, so a run
only touches rows that were inserted, changed or removed since the last one.

Components:
- codec: field projection, value serialization and row hashing
- schema: source column metadata to target DDL
- stores: source and target store adapters
- engine: buffered windows and the merge-join diff
- checkpoint: resume marker persisted in the target
- orchestrator: per-run table loop and connection lifetime
- report: run summary rendering

Usage:
    from replication.orchestrator import Orchestrator
    from replication.engine import TableSynchronizer
"""

__version__ = "4.3.0"
__all__ = ["codec", "schema", "stores", "engine", "checkpoint", "orchestrator", "report"]
