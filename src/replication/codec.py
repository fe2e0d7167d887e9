"""
Row codec: field projection, value serialization and content hashing.

The hash is computed over the entire source row as read (surrogate id
included) so any change to a replicated value changes the hash. Values
written to the target go through serialize_value, which keeps the target
contents identical to earlier releases of the tool.
"""

import hashlib
import json
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from .models import ROW_ID_COLUMN, ColumnDescriptor, Row, TableDescriptor
from .schema import is_excluded_type


def is_trackable(column: ColumnDescriptor) -> bool:
    """True if the column is replicated (not the surrogate id, not XML)."""
    if column.name.lower() == ROW_ID_COLUMN:
        return False
    return not is_excluded_type(column.type_id)


def valid_fields(table: TableDescriptor) -> tuple[str, ...]:
    """
    Columns replicated for a table, in descriptor order.

    Args:
        table: Source table descriptor

    Returns:
        Column names excluding the surrogate id and XML-kind columns
    """
    return tuple(col.name for col in table.columns if is_trackable(col))


def serialize_value(value: Any) -> Any:
    """
    Render one source value for a target DML statement.

    Temporal values become ISO 8601 strings, bytes pass through untouched,
    None stays NULL and everything else is rendered with str(). Single quote
    characters are replaced with a space.
    """
    if value is None or isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value) if isinstance(value, memoryview) else value

    if isinstance(value, datetime):
        text = value.isoformat(sep=" ")
    elif isinstance(value, (date, time)):
        text = value.isoformat()
    else:
        text = str(value)

    return text.replace("'", " ")


def project_values(row: Row, fields: Sequence[str]) -> list[Any]:
    """Serialized values of ``fields`` taken from ``row``, in field order."""
    return [serialize_value(row.get(name)) for name in fields]


def _canonical(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


def canonical_form(row: Row) -> str:
    """
    Canonical text form of a row: compact JSON of name -> value in row order.

    Row order is the SELECT order (surrogate id first, then the valid fields),
    which is stable for a given table descriptor.
    """
    return json.dumps(row, default=_canonical, separators=(",", ":"), ensure_ascii=False)


def row_hash(row: Row) -> str:
    """SHA-256 hex digest of the canonical form of ``row``."""
    return hashlib.sha256(canonical_form(row).encode("utf-8")).hexdigest()


def select_list(fields: Iterable[str]) -> list[str]:
    """Column list read from the source: surrogate id followed by the fields."""
    return [ROW_ID_COLUMN, *fields]
