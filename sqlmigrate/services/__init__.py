"""Service layer for the migration toolkit."""

from .dependency import order_tables
from .export_writer import ExportWriter
from .relocator import FileRelocator
from .verifier import MigrationVerifier

__all__ = [
    "order_tables",
    "ExportWriter",
    "FileRelocator",
    "MigrationVerifier",
]
