"""
ddlsync: keep MySQL tables in sync with declared models.

ddlsync compares declared model fields with the live table definition and
runs the CREATE TABLE / ALTER TABLE / ADD FOREIGN KEY statements needed to
bring the table in line.
"""

__version__ = "0.1.0"
__author__ = "ddlsync Contributors"

from .config import DdlSyncConfig
from .exceptions import (
    ConfigurationError,
    DatabaseError,
    DdlSyncError,
    ReconciliationError,
    ReferenceResolutionError,
    ValidityCheckError,
)

__all__ = [
    "__version__",
    "DdlSyncConfig",
    "DdlSyncError",
    "ConfigurationError",
    "DatabaseError",
    "ReconciliationError",
    "ReferenceResolutionError",
    "ValidityCheckError",
]
