"""apk pending upgrades exporter.

One read cycle opens the package database read-only, asks the solver for an
upgrade changeset, keeps the real upgrades and emits their count with the
package list and OS identity attached as metadata.
"""

import logging
import shutil
from enum import Enum
from typing import Callable, List, Optional

from ...apk import (
    ApkDatabase,
    ApkSolver,
    DatabaseError,
    SolverError,
    SolverOptions,
    collect_upgrades,
)
from ...os_release import OS_RELEASE_PATH, read_os_identity
from ...schemas import PayloadError, serialize_payload
from .base import Dispatch, MetricPoint, MetricsExporter

PLUGIN_NAME = "apk"
PLUGIN_INSTANCE = "upgradable"
METRIC_TYPE = "count"
META_KEY = "payload"


class ProbeState(Enum):
    IDLE = "idle"
    DB_OPENING = "db_opening"
    DB_OPEN = "db_open"
    SOLVING = "solving"
    SERIALIZING = "serializing"
    EMITTING = "emitting"
    CLOSED = "closed"
    FAILED = "failed"


class ApkExporter(MetricsExporter):
    """apk updates exporter
    Emits:
      - apk-upgradable/count (number of installed packages with a pending upgrade)
        with meta "payload": {"count", "packages": [{p, o, v, w}], "os-id", "os-version"}
    """

    def __init__(self, root: str = "/", options: Optional[SolverOptions] = None,
                 os_release_path: str = OS_RELEASE_PATH,
                 database_factory: Callable[[str], ApkDatabase] = ApkDatabase,
                 solver: Optional[ApkSolver] = None,
                 logger: Optional[logging.Logger] = None):
        self.root = root
        self.options = options or SolverOptions()
        self.os_release_path = os_release_path
        self.database_factory = database_factory
        self.solver = solver or ApkSolver(self.options, log_sink=logging.getLogger("apkmon.apk.solver"))
        self.state = ProbeState.IDLE
        super().__init__(PLUGIN_NAME, logger or logging.getLogger("apkmon.apk"))

    def is_available(self) -> bool:
        """apk binary on PATH and an installed database under root"""
        if shutil.which(self.options.apk_path) is None:
            return False
        return ApkDatabase(self.root).installed_path.exists()

    async def collect(self) -> List[MetricPoint]:
        metrics: List[MetricPoint] = []
        status = await self.read(metrics.append)
        if status != 0:
            self.logger.warning(f"{self.name} read cycle failed with status {status}")
        return metrics

    async def read(self, dispatch: Dispatch) -> int:
        """Run one measurement cycle; return 0 on success, -1 on failure"""
        self.state = ProbeState.DB_OPENING
        db = self.database_factory(self.root)
        try:
            db.open()
        except DatabaseError as e:
            self.logger.error(f"failed to open apk database: {e}")
            self.state = ProbeState.FAILED
            return -1

        self.state = ProbeState.DB_OPEN
        rc = -1
        try:
            point = await self._measure(db)
        except SolverError as e:
            self.logger.error(f"apk solver failed: {e}")
        except PayloadError as e:
            self.logger.error(f"unable to set value metadata: {e}")
        else:
            self.state = ProbeState.EMITTING
            dispatch(point)
            rc = 0
        finally:
            db.close()
            self.state = ProbeState.CLOSED if rc == 0 else ProbeState.FAILED

        return rc

    async def _measure(self, db: ApkDatabase) -> MetricPoint:
        self.state = ProbeState.SOLVING
        records = await collect_upgrades(self.solver, db)

        self.state = ProbeState.SERIALIZING
        identity = read_os_identity(self.os_release_path, self.logger)
        payload = serialize_payload(records, identity)
        self.logger.info(f"packages = {payload}")

        return MetricPoint(
            PLUGIN_NAME, METRIC_TYPE, len(records),
            plugin_instance=PLUGIN_INSTANCE,
            meta={META_KEY: payload},
        )
