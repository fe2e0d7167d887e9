"""
Database type enumeration for type-safe database identification.

Replaces hardcoded 'mysql', 'postgresql' and 'sqlserver' strings throughout
the codebase. The target dialect of a run is one of these values.
"""

from enum import Enum


class DatabaseType(str, Enum):
    """
    Enumeration of supported database types.

    Inherits from str for JSON serialization compatibility and
    easy comparison with string values.
    """

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLSERVER = "sqlserver"
    UNKNOWN = "unknown"

    def get_placeholder(self) -> str:
        """
        Get the DB-API parameter placeholder for this database type.

        pymysql and psycopg2 both use the 'format' paramstyle, pyodbc uses
        'qmark'.
        """
        if self == DatabaseType.SQLSERVER:
            return "?"
        return "%s"

    def quote_identifier(self, identifier: str) -> str:
        """
        Quote identifier based on database type.

        The closing delimiter is doubled inside the name, which is how all
        three engines escape it in a delimited identifier.

        Args:
            identifier: Column or table name (validated by the caller)

        Returns:
            Quoted identifier string

        Raises:
            ValueError: For UNKNOWN, which has no quoting style
        """
        if self == DatabaseType.MYSQL:
            return "`" + identifier.replace("`", "``") + "`"
        elif self == DatabaseType.POSTGRESQL:
            return '"' + identifier.replace('"', '""') + '"'
        elif self == DatabaseType.SQLSERVER:
            return "[" + identifier.replace("]", "]]") + "]"
        raise ValueError(f"No identifier quoting for database type {self.value!r}")
