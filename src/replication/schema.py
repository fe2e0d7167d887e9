"""
Schema translation from SQL Server column metadata to target DDL.

The mapping is keyed on sys.columns.system_type_id and is fixed: a type id
that is not in the table aborts creation of the target table. XML columns
have no text form in the codec and are dropped from both the DDL and the
replicated field list.
"""

import logging
from collections.abc import Iterable

from utils.database_types import DatabaseType
from utils.sql_safety import quote_identifier, quote_identifiers

from .errors import UnknownColumnTypeError
from .models import (
    HASH_COLUMN,
    HASH_LENGTH,
    ROW_ID_COLUMN,
    ColumnDescriptor,
    IndexDescriptor,
    TableDescriptor,
)

logger = logging.getLogger(__name__)


class SqlServerType:
    """SQL Server system_type_id values understood by the translator."""

    IMAGE = 34
    TEXT = 35
    DATE = 40
    TINYINT = 48
    SMALLINT = 52
    INT = 56
    DATETIME = 61
    NTEXT = 99
    DECIMAL = 106
    NUMERIC = 108
    BIGINT = 127
    VARBINARY = 165
    VARCHAR = 167
    BINARY = 173
    CHAR = 175
    NVARCHAR = 231
    XML = 241


# Column kinds with no target representation; silently skipped.
EXCLUDED_TYPES = frozenset({SqlServerType.XML})

# type id -> kind
TYPE_KINDS: dict[int, str] = {
    SqlServerType.IMAGE: "blob",
    SqlServerType.VARBINARY: "blob",
    SqlServerType.DATE: "date",
    SqlServerType.TINYINT: "int",
    SqlServerType.SMALLINT: "int",
    SqlServerType.INT: "int",
    SqlServerType.BIGINT: "bigint",
    SqlServerType.DATETIME: "datetime",
    SqlServerType.DECIMAL: "decimal",
    SqlServerType.NUMERIC: "decimal",
    SqlServerType.CHAR: "char",
    SqlServerType.VARCHAR: "varchar",
    SqlServerType.TEXT: "text",
    SqlServerType.NTEXT: "text",
    SqlServerType.NVARCHAR: "text",
    SqlServerType.BINARY: "binary",
}

# kind -> DDL template per target dialect
_MYSQL_TYPES = {
    "blob": "blob",
    "date": "date",
    "int": "int({length})",
    "bigint": "bigint({length})",
    "datetime": "datetime",
    "decimal": "decimal({length},{scale})",
    "char": "char({length})",
    "varchar": "varchar({length})",
    "text": "text",
    "binary": "binary",
}

_POSTGRES_TYPES = {
    "blob": "bytea",
    "date": "date",
    "int": "integer",
    "bigint": "bigint",
    "datetime": "timestamp",
    "decimal": "numeric({length},{scale})",
    "char": "char({length})",
    "varchar": "varchar({length})",
    "text": "text",
    "binary": "bytea",
}

DIALECT_TYPES = {
    DatabaseType.MYSQL: _MYSQL_TYPES,
    DatabaseType.POSTGRESQL: _POSTGRES_TYPES,
}

_TABLE_SUFFIX = {
    DatabaseType.MYSQL: " engine=InnoDB default charset=utf8mb4 collate=utf8mb4_unicode_ci",
    DatabaseType.POSTGRESQL: "",
}


def is_excluded_type(type_id: int) -> bool:
    return type_id in EXCLUDED_TYPES


def column_type(column: ColumnDescriptor, dialect: DatabaseType, table: str = "") -> str:
    """
    Target type for one source column.

    Args:
        column: Source column descriptor
        dialect: Target database type
        table: Table name, used for error reporting only

    Returns:
        DDL type fragment, e.g. ``decimal(10,2)``

    Raises:
        UnknownColumnTypeError: If the type id is not in the mapping table
    """
    kind = TYPE_KINDS.get(column.type_id)
    if kind is None:
        logger.error(
            f"Unknown column type: {column.type_id} "
            f"(table={table}, column={column.name})"
        )
        raise UnknownColumnTypeError(table, column.name, column.type_id)

    # varchar(max) reports a length of -1
    if kind == "varchar" and column.length <= 0:
        kind = "text"

    template = DIALECT_TYPES[DatabaseType(dialect)][kind]
    return template.format(length=column.length, scale=column.scale)


def column_definition(column: ColumnDescriptor, dialect: DatabaseType, table: str = "") -> str:
    """Full column clause: quoted name, type and nullability."""
    nullability = "null" if column.is_nullable else "not null"
    return f"{quote_identifier(column.name, dialect)} {column_type(column, dialect, table)} {nullability}"


def build_create_table(table: TableDescriptor, dialect: DatabaseType = DatabaseType.MYSQL) -> str:
    """
    Build the CREATE TABLE statement mirroring a source table.

    The reserved surrogate id and hash columns come first and the surrogate
    id is the primary key. The source's own surrogate id column and XML
    columns are not mapped.

    Args:
        table: Source table descriptor
        dialect: Target database type

    Returns:
        CREATE TABLE statement

    Raises:
        UnknownColumnTypeError: If any mapped column has an unknown type
    """
    dialect = DatabaseType(dialect)
    row_id = quote_identifier(ROW_ID_COLUMN, dialect)
    row_hash = quote_identifier(HASH_COLUMN, dialect)

    row_id_type = "int(10)" if dialect == DatabaseType.MYSQL else "integer"
    parts = [
        f"{row_id} {row_id_type} not null",
        f"{row_hash} char({HASH_LENGTH}) not null",
    ]

    for column in table.columns:
        if column.name.lower() == ROW_ID_COLUMN or is_excluded_type(column.type_id):
            continue
        parts.append(column_definition(column, dialect, table.name))

    parts.append(f"primary key ({row_id})")

    quoted_table = quote_identifier(table.name, dialect)
    return f"create table {quoted_table} ({', '.join(parts)}){_TABLE_SUFFIX[dialect]}"


def mirrorable_indexes(
    table: TableDescriptor, indexes: Iterable[IndexDescriptor]
) -> list[IndexDescriptor]:
    """
    Indexes that can be recreated on the target.

    Indexes touching the surrogate id (already the primary key) or a column
    dropped from the mirror are skipped.
    """
    mapped = {
        col.name.lower()
        for col in table.columns
        if col.name.lower() != ROW_ID_COLUMN and not is_excluded_type(col.type_id)
    }
    result = []
    for index in indexes:
        if index.columns and all(name.lower() in mapped for name in index.columns):
            result.append(index)
        else:
            logger.debug(f"Skipping index {index.name} on {table.name}")
    return result


def build_create_index(
    table_name: str, index: IndexDescriptor, dialect: DatabaseType = DatabaseType.MYSQL
) -> str:
    """CREATE INDEX statement for one mirrored index."""
    dialect = DatabaseType(dialect)
    name = index.name
    if dialect == DatabaseType.POSTGRESQL:
        # index names share the schema namespace in PostgreSQL
        name = f"{table_name}_{index.name}"
    return (
        f"create index {quote_identifier(name, dialect)} "
        f"on {quote_identifier(table_name, dialect)} "
        f"({quote_identifiers(index.columns, dialect)})"
    )
