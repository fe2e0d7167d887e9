"""
Metrics publisher for the Prometheus HTTP server.

Starts and tracks the HTTP server that exposes the registry on /metrics,
and publishes application build information.
"""

import logging

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Info,
    start_http_server,
)

logger = logging.getLogger(__name__)


class MetricsPublisher:
    """Exposes a registry on an HTTP /metrics endpoint."""

    def __init__(
        self,
        port: int = 9091,
        registry: CollectorRegistry | None = None,
    ):
        """
        Initialize metrics publisher

        Args:
            port: Port to expose metrics on (default: 9091)
            registry: Custom Prometheus registry (default: global REGISTRY)
        """
        self.port = port
        self.registry = registry or REGISTRY
        self._server_started = False

    def start(self) -> None:
        """
        Start the metrics HTTP server.

        Raises:
            RuntimeError: If the port is already in use
        """
        if self._server_started:
            logger.warning(f"Metrics server already running on port {self.port}")
            return

        try:
            start_http_server(self.port, registry=self.registry)
        except OSError as e:
            if "Address already in use" in str(e):
                logger.error(f"Metrics port {self.port} already in use")
                raise RuntimeError(
                    f"Metrics server port {self.port} is already in use"
                ) from e
            raise

        self._server_started = True
        logger.info(f"Metrics server started on port {self.port}")

    def is_started(self) -> bool:
        return self._server_started


class ApplicationInfo:
    """Application name and version."""

    def __init__(
        self,
        app_name: str = "table-mirror",
        version: str = "0.0.0",
        registry: CollectorRegistry | None = None,
    ):
        self.registry = registry or REGISTRY

        self.info = Info(
            "application",
            "Application metadata",
            registry=self.registry,
        )
        self.info.info({"name": app_name, "version": version})

