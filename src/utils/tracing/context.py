"""
Context managers and helpers for span management.

Spans are created around table syncs, sync pre-steps and store statements;
helpers here add attributes and events to whatever span is current.
"""

from contextlib import contextmanager

from opentelemetry import trace

from .tracer import get_tracer


@contextmanager
def trace_operation(
    operation_name: str,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
    **attributes
):
    """
    Trace a block of work as one span.

    Attribute values are stored as strings. An exception escaping the block
    is recorded on the span and re-raised.

    Args:
        operation_name: Span name
        kind: Span kind (INTERNAL, CLIENT, ...)
        **attributes: Span attributes

    Yields:
        The active span

    Example:
        >>> with trace_operation("sync_table", table_name="orders") as span:
        ...     result = synchronizer.sync("orders")
        ...     span.set_attribute("rows_inserted", result.counters.inserted)
    """
    tracer = get_tracer()

    with tracer.start_as_current_span(operation_name, kind=kind) as span:
        for key, value in attributes.items():
            span.set_attribute(key, str(value))

        try:
            yield span
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("error.message", str(e))
            span.record_exception(e)
            raise


def add_span_attributes(**attributes):
    """Add attributes to the current span, if it is recording."""
    current_span = trace.get_current_span()
    if current_span.is_recording():
        for key, value in attributes.items():
            current_span.set_attribute(key, str(value))


def add_span_event(name: str, **attributes):
    """
    Add an event to the current span.

    Example:
        >>> with trace_operation("sync_table"):
        ...     add_span_event("target_created", table_name="orders")
    """
    current_span = trace.get_current_span()
    if current_span.is_recording():
        current_span.add_event(name, attributes={k: str(v) for k, v in attributes.items()})
