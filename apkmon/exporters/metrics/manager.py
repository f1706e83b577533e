"""Metrics Collector Manager - Registers exporters and runs their read callbacks"""
import logging
from typing import Any, Dict, List, Optional

from ... import __version__
from ...apk import ContractViolation, SolverOptions
from ...os_release import OS_RELEASE_PATH
from .apk import ApkExporter
from .base import MetricPoint


class MetricsCollectorManager:
    """Holds the registered exporters and drives one collection pass over them"""

    # Registry mapping config keys to exporter classes
    EXPORTER_REGISTRY = {
        "apk": ApkExporter,
    }

    def __init__(self, config: Optional[Dict] = None):
        """
        Register exporters based on configuration.

        Args:
            config: Configuration dictionary from ProbeConfig
        """
        self.config = config or {}
        self.logger = logging.getLogger("apkmon.metrics_collector")

        exporter_config = self.config.get("exporters", {})

        # Solver flags are captured once here and handed to the exporters
        self.solver_options = SolverOptions.from_dict(self.config.get("solver"))

        self.exporters = []
        for exporter_key, exporter_class in self.EXPORTER_REGISTRY.items():
            if not exporter_config.get(exporter_key, True):
                self.logger.debug(f"Skipping disabled exporter: {exporter_key}")
                continue

            self.logger.info(f"registering plugin {exporter_key} {__version__}")
            try:
                exporter = exporter_class(
                    root=self.config.get("root", "/"),
                    options=self.solver_options,
                    os_release_path=self.config.get("os_release_path", OS_RELEASE_PATH),
                )

                if exporter.available:
                    self.exporters.append(exporter)
                    self.logger.info(f"Enabled exporter: {exporter_key}")
                else:
                    self.logger.warning(f"Exporter {exporter_key} not available on this system")

            except Exception as e:
                self.logger.warning(f"Failed to initialize exporter {exporter_key}: {e}")
                continue

        self.logger.info(f"Initialized {len(self.exporters)} metrics exporters")

    async def collect_metrics(self) -> List[Dict[str, Any]]:
        """
        Run the read callback of every registered exporter.

        Returns:
            List of metric dicts for the transport; failed cycles contribute nothing
        """
        all_metrics = []

        for exporter in self.exporters:
            points: List[MetricPoint] = []
            try:
                status = await exporter.read(points.append)
            except ContractViolation:
                raise
            except Exception as e:
                self.logger.warning(f"Failed to collect metrics from {exporter.__class__.__name__}: {e}")
                continue

            if status != 0:
                self.logger.warning(f"{exporter.name} read callback returned {status}")
                continue

            all_metrics.extend(point.to_dict() for point in points)

        return all_metrics
