"""
Pytest configuration and fixtures for table replication tests.
Provides shared markers and default connection settings.
"""

import os
from pathlib import Path

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(autouse=True)
def set_test_env_vars() -> None:
    """Set default test environment variables if not already set."""
    defaults = {
        "SQLSERVER_HOST": "localhost",
        "SQLSERVER_DATABASE": "warehouse_source",
        "SQLSERVER_USER": "sa",
        "SQLSERVER_PASSWORD": "YourStrong!Passw0rd",
        "TARGET_HOST": "localhost",
        "TARGET_DATABASE": "warehouse_target",
        "TARGET_USER": "mirror",
        "TARGET_PASSWORD": "mirror_secure_password",
        "VAULT_ADDR": "http://localhost:8200",
        "VAULT_TOKEN": "dev-root-token",
    }

    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value
