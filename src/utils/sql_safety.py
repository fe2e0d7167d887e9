"""
SQL safety utilities for preventing SQL injection.

Provides identifier validation and quoting functions for safe SQL query
construction. Values are always bound as parameters; only identifiers are
ever interpolated into statements, and always as delimited identifiers with
the closing delimiter escaped, so any catalog name (spaces, accents, quotes)
round-trips unchanged.
"""

from utils.database_types import DatabaseType

# sysname is nvarchar(128)
MAX_IDENTIFIER_LENGTH = 128


def validate_identifier(identifier: str) -> None:
    """
    Validate a SQL identifier (table name, column name, index name).

    Args:
        identifier: The identifier to validate

    Raises:
        ValueError: If the identifier is empty, too long or contains NUL
    """
    if not identifier:
        raise ValueError("SQL identifier cannot be empty")

    if "\x00" in identifier:
        raise ValueError(f"Invalid SQL identifier: {identifier!r}. NUL characters are not allowed.")

    if len(identifier) > MAX_IDENTIFIER_LENGTH:
        raise ValueError(
            f"Invalid SQL identifier: {identifier[:32]!r}... "
            f"Longer than {MAX_IDENTIFIER_LENGTH} characters."
        )


def quote_identifier(identifier: str, db_type: DatabaseType | str) -> str:
    """
    Safely quote a SQL identifier after validation.

    Args:
        identifier: The identifier to quote (table name, column name, etc.)
        db_type: Database type for proper quoting style

    Returns:
        Delimited identifier safe for use in SQL

    Raises:
        ValueError: If the identifier is invalid or the database type unknown
    """
    validate_identifier(identifier)
    return DatabaseType(db_type).quote_identifier(identifier)


def quote_identifiers(identifiers, db_type: DatabaseType | str) -> str:
    """Quote and comma-join a sequence of identifiers."""
    return ", ".join(quote_identifier(name, db_type) for name in identifiers)


def validate_integer_param(value: int, param_name: str, min_value: int = 0) -> None:
    """
    Validate an integer parameter interpolated into SQL (TOP/LIMIT sizes).

    Args:
        value: The value to validate
        param_name: Name of the parameter (for error messages)
        min_value: Minimum allowed value (default 0)

    Raises:
        ValueError: If the value is not a valid integer or below minimum
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(
            f"Invalid {param_name}: {value!r}. Must be an integer."
        )

    if value < min_value:
        raise ValueError(
            f"Invalid {param_name}: {value}. Must be >= {min_value}."
        )
