import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .apk import SolverOptions
from .os_release import OS_RELEASE_PATH

logger = logging.getLogger("apkmon.config")


@dataclass
class ProbeConfig:
    """Probe configuration with defaults"""
    server: Optional[str] = None
    token: Optional[str] = None
    verify_tls: bool = True
    interval: int = 300
    log_level: str = "INFO"
    once: bool = False
    root: str = "/"
    os_release_path: str = OS_RELEASE_PATH
    exporters: Dict[str, Any] = None
    solver: Dict[str, Any] = None

    def __post_init__(self):
        # Metrics exporters configuration (enable/disable)
        if self.exporters is None:
            self.exporters = {
                "apk": True,
            }

        # Solver flags; read-only, simulated and without package cache by default
        if self.solver is None:
            self.solver = {
                "apk_path": "apk",
                "simulate": True,
                "no_cache": True,
                "no_network": False,
                "timeout": 120,
            }

    @classmethod
    def from_file(cls, config_path: Path) -> "ProbeConfig":
        """Load configuration from YAML file"""
        if not config_path.exists():
            logger.debug(f"Config file not found: {config_path}, using defaults")
            return cls()

        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            logger.debug(f"Loaded config from {config_path}: {data}")
            return cls(**data)
        except Exception as e:
            logger.warning(f"Failed to load config from {config_path}: {e}, using defaults")
            return cls()

    def override_with_args(self, args: argparse.Namespace) -> "ProbeConfig":
        """Override config with command line arguments if provided"""
        # Only override if explicitly provided - preserves config file values
        self.server = args.server if args.server is not None else self.server
        self.interval = args.interval if args.interval is not None else self.interval
        self.log_level = args.log_level if args.log_level is not None else self.log_level
        self.root = args.root if args.root is not None else self.root
        self.once = args.once
        return self

    def solver_options(self) -> SolverOptions:
        return SolverOptions.from_dict(self.solver)
