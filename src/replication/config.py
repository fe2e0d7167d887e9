"""
Backend connection settings and sync tuning options.

Settings come from HashiCorp Vault, command-line arguments or environment
variables (see replication.cli.credentials). Shared hosting setups prefix
database and user names with an account prefix; when a database name is
configured both names are prefixed.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from utils.database_types import DatabaseType

from .errors import ConfigValidationError

DEFAULT_BUFFER_SIZE = 500
DEFAULT_PAGE_SIZE = 5000
DEFAULT_SQLSERVER_DRIVER = "ODBC Driver 18 for SQL Server"

DEFAULT_PORTS = {
    DatabaseType.SQLSERVER: 1433,
    DatabaseType.MYSQL: 3306,
    DatabaseType.POSTGRESQL: 5432,
}


@dataclass
class BackendConfig:
    """Connection settings for one backend."""

    host: str = ""
    database: str = ""
    user: str = ""
    password: str | None = None
    prefix: str = ""
    port: int | None = None
    driver: str = DEFAULT_SQLSERVER_DRIVER

    @property
    def effective_database(self) -> str:
        return f"{self.prefix}{self.database}" if self.database else ""

    @property
    def effective_user(self) -> str:
        if self.database:
            return f"{self.prefix}{self.user}"
        return self.user

    def validate(self, role: str) -> "BackendConfig":
        """
        Check required fields.

        Args:
            role: Backend role used in the error message ("source", "target")

        Returns:
            self, to allow chaining

        Raises:
            ConfigValidationError: If host, database, user or password is missing
        """
        missing = [
            name for name in ("host", "database", "user", "password")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigValidationError(
                f"Missing {role} configuration: {', '.join(missing)}"
            )
        if self.port is not None and not (0 < int(self.port) < 65536):
            raise ConfigValidationError(f"Invalid {role} port: {self.port}")
        return self

    def describe(self) -> str:
        """Connection summary safe to log (no password)."""
        port = f":{self.port}" if self.port else ""
        return f"{self.effective_user}@{self.host}{port}/{self.effective_database}"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default_port: int | None = None) -> "BackendConfig":
        """
        Build a config from a credential mapping (Vault secret or parsed args).

        Accepts ``server`` as an alias of ``host`` and ``username`` as an alias
        of ``user``, matching the layout of the Vault secrets.
        """
        port = data.get("port") or default_port
        return cls(
            host=data.get("host") or data.get("server") or "",
            database=data.get("database") or "",
            user=data.get("user") or data.get("username") or "",
            password=data.get("password"),
            prefix=data.get("prefix") or "",
            port=int(port) if port else None,
            driver=data.get("driver") or DEFAULT_SQLSERVER_DRIVER,
        )

    @classmethod
    def from_env(cls, env_prefix: str, default_port: int | None = None) -> "BackendConfig":
        """
        Build a config from ``<env_prefix>_HOST``, ``_PORT``, ``_PREFIX``,
        ``_DATABASE``, ``_USER``, ``_PASSWORD`` and ``_DRIVER``.
        """
        return cls.from_mapping(
            {
                "host": os.getenv(f"{env_prefix}_HOST"),
                "port": os.getenv(f"{env_prefix}_PORT"),
                "prefix": os.getenv(f"{env_prefix}_PREFIX"),
                "database": os.getenv(f"{env_prefix}_DATABASE"),
                "user": os.getenv(f"{env_prefix}_USER"),
                "password": os.getenv(f"{env_prefix}_PASSWORD"),
                "driver": os.getenv(f"{env_prefix}_DRIVER"),
            },
            default_port=default_port,
        )


@dataclass
class SyncOptions:
    """Tuning knobs for one run."""

    buffer_size: int = DEFAULT_BUFFER_SIZE
    page_size: int = DEFAULT_PAGE_SIZE
    force_create: bool = False
    dialect: DatabaseType = DatabaseType.MYSQL

    def __post_init__(self):
        self.dialect = DatabaseType(self.dialect)
        if self.buffer_size <= 0:
            raise ConfigValidationError(f"buffer_size must be positive, got {self.buffer_size}")
        if self.page_size <= 0:
            raise ConfigValidationError(f"page_size must be positive, got {self.page_size}")
        if self.dialect not in (DatabaseType.MYSQL, DatabaseType.POSTGRESQL):
            raise ConfigValidationError(f"Unsupported target dialect: {self.dialect.value}")
