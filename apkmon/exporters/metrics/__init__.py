"""Metrics exporters package - collects package upgrade metrics"""

from .base import MetricPoint, MetricsExporter
from .apk import ApkExporter, ProbeState
from .manager import MetricsCollectorManager

__all__ = [
    # Base classes
    'MetricPoint',
    'MetricsExporter',

    # Exporters
    'ApkExporter',
    'ProbeState',

    # Manager
    'MetricsCollectorManager',
]
