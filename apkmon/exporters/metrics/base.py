import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

Dispatch = Callable[["MetricPoint"], None]


@dataclass
class MetricPoint:
    """Single measurement handed to the dispatcher"""
    plugin: str
    type: str
    value: float  # Will be converted to int for count-typed metrics
    plugin_instance: str = ""
    meta: Dict[str, str] = None
    timestamp: int = None

    def __post_init__(self):
        if self.meta is None:
            self.meta = {}
        if self.timestamp is None:
            self.timestamp = int(time.time())

        if self._should_be_integer():
            self.value = int(self.value)

    def _should_be_integer(self) -> bool:
        """Check if this metric type should be stored as integer"""
        integer_types = {'count'}
        return self.type in integer_types

    @property
    def identifier(self) -> str:
        """plugin[-instance]/type"""
        plugin = f"{self.plugin}-{self.plugin_instance}" if self.plugin_instance else self.plugin
        return f"{plugin}/{self.type}"

    def to_dict(self) -> Dict[str, Any]:
        """Record format used by the transport"""
        return {
            "timestamp": self.timestamp,
            "plugin": self.plugin,
            "plugin_instance": self.plugin_instance,
            "type": self.type,
            "value_type": "int" if isinstance(self.value, int) else "float",
            "value": float(self.value),
            "meta": dict(self.meta),
        }


class MetricsExporter(ABC):
    """Base class for all metrics collectors"""

    def __init__(self, name: str, logger: logging.Logger = logging.getLogger(__name__)):
        self.name = name
        self.enabled = True
        self.logger = logger
        self.available = self.is_available()  # Check availability once at startup
        self.last_collection = 0

        # Log availability status
        if not self.available:
            self.logger.info(f"{self.name} metrics disabled - not available")

    def is_available(self) -> bool:
        """Check if this exporter is available. Override in subclasses for specific checks."""
        return True  # Default: always available

    @abstractmethod
    async def collect(self) -> List[MetricPoint]:
        """Collect metrics and return list of MetricPoint objects"""

    async def read(self, dispatch: Dispatch) -> int:
        """Read callback: collect and dispatch metrics, return 0 on success"""
        if not self.enabled:
            return 0

        try:
            start_time = time.time()
            metrics = await self.collect()
            collection_time = time.time() - start_time
        except Exception as e:
            self.logger.error(f"{self.name} collection failed: {e}")
            return -1

        for metric in metrics:
            dispatch(metric)

        self.logger.debug(f"{self.name}: collected {len(metrics)} metrics in {collection_time:.2f}s")
        self.last_collection = time.time()
        return 0
