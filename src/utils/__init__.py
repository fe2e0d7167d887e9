"""
Shared utilities for the replication tool

Provides:
- database_types: target/source database enumeration and identifier quoting
- sql_safety: identifier validation before SQL interpolation
- logging: structured logging setup
- tracing: OpenTelemetry spans
- metrics: Prometheus metrics publishing
- vault_client: HashiCorp Vault integration for secrets management
"""

__all__ = ["database_types", "sql_safety", "logging", "tracing", "metrics", "vault_client"]
