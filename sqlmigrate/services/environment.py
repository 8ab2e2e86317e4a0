"""Checks for the database client libraries the migration relies on."""

import importlib
import logging
import sqlite3
from importlib import metadata
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

CLIENT_LIBRARIES = ["SQLAlchemy", "pyodbc", "pydantic", "python-dateutil"]


def installed_version(distribution: str) -> Optional[str]:
    """Version of an installed distribution, or None when it is missing."""
    try:
        return metadata.version(distribution)
    except metadata.PackageNotFoundError:
        return None


def odbc_drivers() -> List[str]:
    """ODBC drivers visible to pyodbc; empty when pyodbc is not installed."""
    if installed_version("pyodbc") is None:
        return []
    try:
        pyodbc = importlib.import_module("pyodbc")
        return list(pyodbc.drivers())
    except (ImportError, OSError) as e:
        logger.warning(f"pyodbc is installed but cannot list drivers: {e}")
        return []


def check_client_libraries() -> Dict[str, Optional[str]]:
    """
    Report installed client library versions.

    Returns:
        Mapping of library name -> version (None when not installed),
        including the SQLite library linked into Python
    """
    report: Dict[str, Optional[str]] = {
        name: installed_version(name) for name in CLIENT_LIBRARIES
    }
    report["sqlite"] = sqlite3.sqlite_version

    for name, version in report.items():
        if version is None:
            logger.warning(f"Client library not installed: {name}")
        else:
            logger.debug(f"{name} {version}")
    return report
