"""Data models for the migration toolkit."""

from .schema import (
    ColumnDefinition,
    ForeignKeyReference,
    TableDescriptor,
    SchemaDocument,
)
from .migration import (
    MigrationConfig,
    MigrationRun,
    MigrationStep,
    MigrationStatus,
)
from .record import (
    RowBatch,
    VerificationStatus,
    VerificationResult,
    JoinCheckResult,
    VerificationReport,
)

__all__ = [
    "ColumnDefinition",
    "ForeignKeyReference",
    "TableDescriptor",
    "SchemaDocument",
    "MigrationConfig",
    "MigrationRun",
    "MigrationStep",
    "MigrationStatus",
    "RowBatch",
    "VerificationStatus",
    "VerificationResult",
    "JoinCheckResult",
    "VerificationReport",
]
