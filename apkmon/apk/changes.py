"""Classification of solver changes into reportable upgrades"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..schemas import UpgradeRecord
from .database import ApkDatabase, ApkPackage

logger = logging.getLogger("apkmon.apk.changes")


class ContractViolation(AssertionError):
    """Solver output no longer matches what the probe relies on"""


@dataclass(frozen=True)
class PackageChange:
    """Transition proposed by the solver for one package name.

    ``old`` is absent for a fresh install, ``new`` is absent for a removal.
    """
    old: Optional[ApkPackage] = None
    new: Optional[ApkPackage] = None


def classify_change(change: PackageChange) -> Optional[UpgradeRecord]:
    """Return the upgrade record for a real version change, else None"""
    old, new = change.old, change.new
    if old is None or new is None:
        return None

    # Raised explicitly so the check survives python -O
    if old.name is None or old.origin is None:
        raise ContractViolation(f"solver change lacks old package identity: {change!r}")

    if old.version == new.version:
        return None

    return UpgradeRecord(
        name=old.name,
        origin=old.origin,
        old_version=old.version,
        new_version=new.version,
    )


async def collect_upgrades(solver, db: ApkDatabase) -> List[UpgradeRecord]:
    """Run an upgrade resolution over ``db`` and keep the real upgrades in solver order.

    SolverError from the solver propagates unchanged.
    """
    changeset = await solver.solve(db)
    try:
        records: List[UpgradeRecord] = []
        for change in changeset:
            record = classify_change(change)
            if record is not None:
                records.append(record)
        logger.debug(f"solver proposed {len(changeset)} changes, {len(records)} upgrades")
        return records
    finally:
        changeset.clear()
