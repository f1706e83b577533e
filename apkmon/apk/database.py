"""Read-only view of the local apk package database.

Only the pieces the upgrade probe needs are loaded: the installed package
records (name, version, origin) and the world constraint list.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

INSTALLED_DB = "lib/apk/db/installed"
WORLD_FILE = "etc/apk/world"

logger = logging.getLogger("apkmon.apk.database")


class DatabaseError(Exception):
    """Raised when the package database cannot be opened or is misused"""


@dataclass(frozen=True)
class ApkPackage:
    """Single package descriptor"""
    name: str
    version: str
    origin: Optional[str] = None


class ApkDatabase:
    """Handle on the installed package database under ``root``.

    The handle must be opened before use and closed exactly once afterwards.
    Nothing under ``root`` is ever written.
    """

    def __init__(self, root: str = "/"):
        self.root = Path(root)
        self._packages: Dict[str, ApkPackage] = {}
        self._world: List[str] = []
        self._open = False

    @property
    def installed_path(self) -> Path:
        return self.root / INSTALLED_DB

    @property
    def world_path(self) -> Path:
        return self.root / WORLD_FILE

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def world(self) -> List[str]:
        self._require_open()
        return list(self._world)

    def open(self) -> None:
        """Load installed packages and world constraints into memory"""
        if self._open:
            raise DatabaseError(f"database at {self.root} is already open")

        try:
            with open(self.installed_path, "r", encoding="utf-8", errors="replace") as f:
                packages = self._parse_installed(f.read())
        except OSError as e:
            raise DatabaseError(f"{self.installed_path}: {e.strerror or e}") from e

        try:
            world = self.world_path.read_text(encoding="utf-8", errors="replace").split()
        except FileNotFoundError:
            world = []
        except OSError as e:
            raise DatabaseError(f"{self.world_path}: {e.strerror or e}") from e

        self._packages = packages
        self._world = world
        self._open = True
        logger.debug(f"opened apk database at {self.root}: {len(packages)} installed, {len(world)} in world")

    def close(self) -> None:
        if not self._open:
            raise DatabaseError(f"database at {self.root} is not open")
        self._packages = {}
        self._world = []
        self._open = False

    def installed(self, name: str) -> Optional[ApkPackage]:
        """Return the installed package record for ``name``, if any"""
        self._require_open()
        return self._packages.get(name)

    def __len__(self) -> int:
        return len(self._packages)

    def _require_open(self) -> None:
        if not self._open:
            raise DatabaseError(f"database at {self.root} is not open")

    @staticmethod
    def _parse_installed(text: str) -> Dict[str, ApkPackage]:
        """Parse the installed db: records separated by blank lines, ``K:value`` lines"""
        packages: Dict[str, ApkPackage] = {}
        fields: Dict[str, str] = {}

        def flush():
            name = fields.get("P")
            version = fields.get("V")
            if name and version:
                packages[name] = ApkPackage(name, version, fields.get("o"))
            fields.clear()

        for line in text.splitlines():
            if not line.strip():
                flush()
                continue
            if len(line) < 2 or line[1] != ":":
                continue
            # Per-file records (F:, R:, Z: ...) repeat; keep the first package-level value
            fields.setdefault(line[0], line[2:])
        flush()

        return packages
