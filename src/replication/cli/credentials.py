"""
Credential loading and logging setup for the CLI.

Credentials come from HashiCorp Vault when --use-vault is given, otherwise
from command-line arguments with environment variables as fallback.
"""

import argparse
import logging

import requests

from utils.database_types import DatabaseType
from utils.logging import setup_logging
from utils.vault_client import VaultClient

from ..config import DEFAULT_PORTS, BackendConfig
from ..errors import ConfigValidationError

logger = logging.getLogger(__name__)


def configure_logging(args: argparse.Namespace) -> None:
    """Configure logging from the parsed arguments."""
    setup_logging(
        level=args.log_level,
        log_file=args.log_file or None,
        console_output=args.verbose,
        json_format=args.log_json,
    )


def _from_args(args: argparse.Namespace, role: str, env_prefix: str, default_port: int) -> BackendConfig:
    env = BackendConfig.from_env(env_prefix, default_port=default_port)
    return BackendConfig(
        host=getattr(args, f"{role}_host") or env.host,
        port=getattr(args, f"{role}_port") or env.port,
        prefix=getattr(args, f"{role}_prefix") or env.prefix,
        database=getattr(args, f"{role}_database") or env.database,
        user=getattr(args, f"{role}_user") or env.user,
        password=getattr(args, f"{role}_password") or env.password,
        driver=getattr(args, f"{role}_driver", None) or env.driver,
    )


def _from_vault(database_type: str, default_port: int) -> BackendConfig:
    try:
        client = VaultClient()
        if not client.health_check():
            raise ConfigValidationError(f"Vault at {client.vault_addr} is unreachable or sealed")
        secret = client.get_database_credentials(database_type)
    except (ValueError, requests.RequestException) as e:
        logger.error(f"Failed to fetch {database_type} credentials from Vault: {e}", exc_info=True)
        raise ConfigValidationError(
            f"Cannot load {database_type} credentials from Vault", driver_message=str(e)
        ) from e
    return BackendConfig.from_mapping(secret, default_port=default_port)


def get_backend_configs(
    args: argparse.Namespace, require_target: bool = True
) -> tuple[BackendConfig, BackendConfig]:
    """
    Resolve and validate source and target settings.

    Args:
        args: Parsed command-line arguments
        require_target: Validate the target settings too (remove-id mode
            never connects to the target)

    Returns:
        Tuple of (source_config, target_config)

    Raises:
        ConfigValidationError: If Vault fails or a required field is missing
    """
    dialect = DatabaseType(args.target_dialect)

    if args.use_vault:
        source = _from_vault(DatabaseType.SQLSERVER.value, DEFAULT_PORTS[DatabaseType.SQLSERVER])
        target = _from_vault(dialect.value, DEFAULT_PORTS[dialect]) if require_target else BackendConfig()
        logger.info("Fetched credentials from Vault")
    else:
        source = _from_args(args, "source", "SQLSERVER", DEFAULT_PORTS[DatabaseType.SQLSERVER])
        target = _from_args(args, "target", "TARGET", DEFAULT_PORTS[dialect])

    if require_target:
        target.validate("target")
    return source.validate("source"), target
