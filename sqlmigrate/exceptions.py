"""Exceptions raised by the migration toolkit."""

from typing import List, Optional


class MigrationError(Exception):
    """Base class for all migration errors."""


class SourceNotFoundError(MigrationError):
    """The source database file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Source database not found: {path}")


class IntrospectionError(MigrationError):
    """A table could not be described or read from the source."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"Could not introspect table '{table}': {message}")


class ConstraintCreationError(MigrationError):
    """A table or one of its constraints could not be created in the destination."""

    def __init__(
        self,
        table: str,
        message: str,
        columns: Optional[List[str]] = None,
        referenced_table: Optional[str] = None
    ):
        self.table = table
        self.columns = columns or []
        self.referenced_table = referenced_table
        super().__init__(f"Failed to create table '{table}': {message}")


class RowShapeError(MigrationError):
    """A data row does not have the number of columns its table declares."""


class ExportFormatError(MigrationError):
    """An export folder or its schema sidecar is missing or malformed."""
