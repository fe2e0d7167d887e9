"""
HashiCorp Vault client for fetching database credentials

Reads connection secrets from the KV v2 secrets engine over its HTTP API.
Secrets live at ``secret/database/<database_type>``.
"""

import logging
import os
import re
from typing import Any

import requests

logger = logging.getLogger(__name__)

SUPPORTED_DATABASE_TYPES = ("sqlserver", "mysql", "postgresql")

REQUIRED_FIELDS = {
    "sqlserver": ("server", "database", "username", "password"),
    "mysql": ("host", "database", "username", "password"),
    "postgresql": ("host", "database", "username", "password"),
}

DEFAULT_PORTS = {
    "sqlserver": 1433,
    "mysql": 3306,
    "postgresql": 5432,
}

_SAFE_PATH = re.compile(r"^[a-zA-Z0-9/_-]+$")
_SAFE_NAME = re.compile(r"^[a-zA-Z0-9_]+$")


class VaultClient:
    """
    HashiCorp Vault client for secrets management

    This client uses the KV v2 secrets engine to fetch database credentials.
    """

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_token: str | None = None,
        namespace: str | None = None,
    ):
        """
        Initialize Vault client

        Args:
            vault_addr: Vault server address (default: from VAULT_ADDR env var)
            vault_token: Vault authentication token (default: from VAULT_TOKEN env var)
            namespace: Vault namespace (optional, for Vault Enterprise)

        Raises:
            ValueError: If vault_addr or vault_token are not provided
        """
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.namespace = namespace or os.getenv("VAULT_NAMESPACE")

        if not self.vault_addr:
            raise ValueError(
                "Vault address not provided. Set VAULT_ADDR environment variable "
                "or pass vault_addr parameter."
            )

        if not self.vault_token:
            raise ValueError(
                "Vault token not provided. Set VAULT_TOKEN environment variable "
                "or pass vault_token parameter."
            )

        self.vault_addr = self.vault_addr.rstrip("/")

        self.headers = {
            "X-Vault-Token": self.vault_token,
            "Content-Type": "application/json",
        }
        if self.namespace:
            self.headers["X-Vault-Namespace"] = self.namespace

        logger.info(f"Initialized Vault client for {self.vault_addr}")

    def get_secret(self, secret_path: str) -> dict[str, Any]:
        """
        Fetch secret from Vault KV v2 secrets engine

        Args:
            secret_path: Path to secret (e.g., "secret/database/sqlserver")

        Returns:
            Dictionary containing secret data

        Raises:
            ValueError: If secret_path is invalid or the secret is missing
            requests.RequestException: If the Vault request fails
        """
        if not secret_path or not isinstance(secret_path, str):
            raise ValueError("secret_path must be a non-empty string")

        if ".." in secret_path or secret_path.startswith("//"):
            raise ValueError(
                f"Invalid secret_path: {secret_path}. "
                "Path traversal attempts are not allowed."
            )

        if not _SAFE_PATH.match(secret_path):
            raise ValueError(
                f"Invalid secret_path: {secret_path}. "
                "Only alphanumeric characters, slashes, underscores, and hyphens are allowed."
            )

        # KV v2 reads go through <mount>/data/<path>
        if "/data/" not in secret_path:
            mount, _, rest = secret_path.partition("/")
            secret_path = f"{mount}/data/{rest}" if rest else f"{mount}/data"

        url = f"{self.vault_addr}/v1/{secret_path}"
        logger.debug(f"Fetching secret from: {url}")

        response = requests.get(url, headers=self.headers, timeout=10)
        if response.status_code == 404:
            raise ValueError(f"Secret not found at path: {secret_path}")
        response.raise_for_status()

        secret_data = response.json().get("data", {}).get("data", {})
        if not secret_data:
            raise ValueError(f"No data found in secret at path: {secret_path}")

        return secret_data

    def get_database_credentials(self, database_type: str) -> dict[str, Any]:
        """
        Fetch database credentials from Vault

        Args:
            database_type: "sqlserver", "mysql" or "postgresql"

        Returns:
            Secret fields; always includes ``port``. SQL Server secrets name
            the host ``server``, the others ``host``. An optional ``prefix``
            is passed through.

        Raises:
            ValueError: If database_type is invalid or fields are missing
        """
        if not database_type or not isinstance(database_type, str):
            raise ValueError("database_type must be a non-empty string")

        if not _SAFE_NAME.match(database_type):
            raise ValueError(
                f"Invalid database_type: {database_type}. "
                "Only alphanumeric characters and underscores are allowed."
            )

        if database_type not in SUPPORTED_DATABASE_TYPES:
            raise ValueError(
                f"Unsupported database_type: {database_type}. "
                f"Must be one of: {', '.join(SUPPORTED_DATABASE_TYPES)}."
            )

        secret_data = dict(self.get_secret(f"secret/database/{database_type}"))

        missing_fields = [
            field for field in REQUIRED_FIELDS[database_type] if field not in secret_data
        ]
        if missing_fields:
            raise ValueError(
                f"Missing required fields in secret: {', '.join(missing_fields)}"
            )

        secret_data.setdefault("port", DEFAULT_PORTS[database_type])

        logger.info(f"Successfully fetched {database_type} credentials from Vault")
        return secret_data

    def health_check(self) -> bool:
        """
        Check if Vault is accessible and unsealed

        Returns:
            True if Vault answers as active or standby
        """
        url = f"{self.vault_addr}/v1/sys/health"
        try:
            response = requests.get(url, timeout=5)
        except requests.RequestException as e:
            logger.error(f"Vault health check failed: {e}")
            return False
        # 200 active, 429 standby, 472 DR secondary, 473 performance standby
        return response.status_code in (200, 429, 472, 473)
