"""
Exporters Module - metrics collection

Structure:
    exporters/
    - metrics/          # Metrics exporters
      - base.py         # MetricPoint and MetricsExporter base class
      - apk.py          # Pending apk package upgrades
      - manager.py      # Exporter registration and read pass
"""

from .metrics import (
    MetricPoint,
    MetricsExporter,
    ApkExporter,
    ProbeState,
    MetricsCollectorManager,
)

__all__ = [
    'MetricPoint',
    'MetricsExporter',
    'ApkExporter',
    'ProbeState',
    'MetricsCollectorManager',
]
