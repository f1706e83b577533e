"""Adapters around the apk package database and solver"""

from .database import ApkDatabase, ApkPackage, DatabaseError
from .solver import ApkSolver, SolverError, SolverOptions
from .changes import ContractViolation, PackageChange, classify_change, collect_upgrades

__all__ = [
    'ApkDatabase',
    'ApkPackage',
    'DatabaseError',
    'ApkSolver',
    'SolverError',
    'SolverOptions',
    'ContractViolation',
    'PackageChange',
    'classify_change',
    'collect_upgrades',
]
