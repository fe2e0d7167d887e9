"""
Distributed tracing using OpenTelemetry.

Instruments:
- Table sync runs and their pre-steps
- Store connections and statements (SQL Server, MySQL, PostgreSQL)
"""

from .context import add_span_attributes, add_span_event, trace_operation
from .tracer import (
    get_tracer,
    initialize_tracing,
    is_tracing_enabled,
    shutdown_tracing,
)

__all__ = [
    "initialize_tracing",
    "get_tracer",
    "is_tracing_enabled",
    "shutdown_tracing",
    "trace_operation",
    "add_span_attributes",
    "add_span_event",
]
