"""apk solver adapter.

Runs ``apk upgrade`` in simulate mode against the database root and turns its
progress output into an ordered changeset. Diagnostics printed by apk are
relayed to an injected logger.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional, Tuple

from .changes import PackageChange
from .database import ApkDatabase, ApkPackage

# (3/12) Upgrading busybox (1.36.1-r2 -> 1.36.1-r5)
# (4/12) Upgrading curl@edge (8.0.0-r0 -> 8.1.0-r0)
CHANGE_RE = re.compile(
    r"^\(\s*\d+/\d+\)\s+(?P<verb>[A-Z][a-z]+)\s+(?P<name>\S+)\s+"
    r"\((?P<old>[^()\s]+)(?:\s+->\s+(?P<new>[^()\s]+))?\)\s*$"
)

ERROR_PREFIX = "ERROR: "
WARNING_PREFIX = "WARNING: "


class SolverError(Exception):
    """Raised when the solver cannot produce a changeset"""


@dataclass(frozen=True)
class SolverOptions:
    """Solver flags, fixed once at registration time"""
    apk_path: str = "apk"
    simulate: bool = True
    no_cache: bool = True
    no_network: bool = False
    timeout: float = 120.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SolverOptions":
        """Build options from a config mapping, ignoring unknown keys"""
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def argv(self, root: str) -> List[str]:
        args = [self.apk_path, "--root", str(root)]
        if self.simulate:
            args.append("--simulate")
        if self.no_cache:
            args.append("--no-cache")
        if self.no_network:
            args.append("--no-network")
        args.extend(["--no-progress", "upgrade"])
        return args


class ApkSolver:
    """Upgrade resolver backed by the apk binary"""

    def __init__(self, options: Optional[SolverOptions] = None,
                 log_sink: Optional[logging.Logger] = None):
        self.options = options or SolverOptions()
        self.log_sink = log_sink or logging.getLogger("apkmon.apk.solver")

    async def solve(self, db: ApkDatabase) -> List[PackageChange]:
        """Resolve the installed world for upgrade and return the proposed changes"""
        argv = self.options.argv(db.root)
        self.log_sink.debug(f"running solver: {' '.join(argv)}")
        self.log_sink.debug(f"world: {' '.join(db.world)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SolverError(f"unable to run {self.options.apk_path}: {e.strerror or e}") from e

        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=self.options.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise SolverError(f"solver timed out after {self.options.timeout}s")

        changes, errors = self._parse_output(
            out.decode(errors="replace"), err.decode(errors="replace"), db
        )

        if proc.returncode != 0:
            reason = "; ".join(errors) or f"exit status {proc.returncode}"
            raise SolverError(f"apk solver returned errors: {reason}")

        return changes

    def _parse_output(self, stdout: str, stderr: str,
                      db: ApkDatabase) -> Tuple[List[PackageChange], List[str]]:
        changes: List[PackageChange] = []
        errors: List[str] = []

        for line in stdout.splitlines():
            line = line.rstrip()
            if not line:
                continue
            m = CHANGE_RE.match(line)
            if m:
                changes.append(self._to_change(m, db))
            else:
                errors.extend(self._relay(line))

        for line in stderr.splitlines():
            line = line.rstrip()
            if line:
                errors.extend(self._relay(line, stream="stderr"))

        return changes, errors

    def _relay(self, line: str, stream: str = "stdout") -> List[str]:
        """Route one apk diagnostic line to the log sink; return it if it is an error"""
        if line.startswith(ERROR_PREFIX):
            message = line[len(ERROR_PREFIX):]
            self.log_sink.error(message)
            return [message]
        if line.startswith(WARNING_PREFIX):
            self.log_sink.warning(line[len(WARNING_PREFIX):])
        elif stream == "stderr":
            self.log_sink.warning(line)
        else:
            self.log_sink.info(line)
        return []

    @staticmethod
    def _to_change(m: "re.Match", db: ApkDatabase) -> PackageChange:
        verb = m.group("verb")
        name, _, _tag = m.group("name").partition("@")
        first, second = m.group("old"), m.group("new")

        if verb == "Installing":
            return PackageChange(None, ApkPackage(name, first))

        installed = db.installed(name)
        old_version = first
        if installed is not None and installed.version == old_version:
            old = installed
        else:
            old = ApkPackage(name, old_version, installed.origin if installed else None)

        if verb == "Purging":
            return PackageChange(old, None)

        new_version = second if second is not None else first
        return PackageChange(old, ApkPackage(name, new_version, old.origin))
