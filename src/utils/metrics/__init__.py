"""
Metrics publishing to Prometheus.

Usage:
    from utils.metrics import initialize_metrics

    metrics = initialize_metrics(port=9091, version="4.3.0")
    metrics["replication"].record_operation("orders", "insert")
"""

import logging
from typing import Any

from prometheus_client import CollectorRegistry

from .publisher import ApplicationInfo, MetricsPublisher
from .registry import get_or_create_metric
from .replication import ReplicationMetrics

logger = logging.getLogger(__name__)


def initialize_metrics(
    port: int = 9091,
    registry: CollectorRegistry | None = None,
    version: str = "0.0.0",
) -> dict[str, Any]:
    """
    Create the metric objects and start the metrics server.

    Args:
        port: Port to expose metrics on (default: 9091)
        registry: Custom Prometheus registry (default: global REGISTRY)
        version: Application version published in the info metric

    Returns:
        Dictionary with ``publisher``, ``replication`` and ``app_info``
    """
    logger.info(f"Initializing metrics on port {port}")

    publisher = MetricsPublisher(port=port, registry=registry)
    publisher.start()

    return {
        "publisher": publisher,
        "replication": ReplicationMetrics(registry=registry),
        "app_info": ApplicationInfo(version=version, registry=registry),
    }


__all__ = [
    "MetricsPublisher",
    "ReplicationMetrics",
    "ApplicationInfo",
    "initialize_metrics",
    "get_or_create_metric",
]
