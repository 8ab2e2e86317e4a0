"""Base loader interface for destination databases."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from datetime import datetime, timezone
import logging

from ..exceptions import MigrationError
from ..extractors.base import BaseExtractor
from ..models.record import RowBatch
from ..models.schema import TableDescriptor
from ..services.dependency import order_tables

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Result of loading one table."""
    table: str
    rows_attempted: int = 0
    rows_loaded: int = 0
    batches: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "rows_attempted": self.rows_attempted,
            "rows_loaded": self.rows_loaded,
            "batches": self.batches,
            "success": self.success,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "errors": self.errors,
        }


class BaseLoader(ABC):
    """
    Base class for destination loaders.

    Loaders recreate tables from descriptors and bulk-load row batches.
    Tables are always created parents first, and loaded in the same order.
    """

    def __init__(self, batch_size: int = 1000, drop_existing: bool = False):
        """
        Initialize the loader.

        Args:
            batch_size: Number of rows per insert batch
            drop_existing: Drop destination tables that already exist
        """
        self.batch_size = batch_size
        self.drop_existing = drop_existing
        self._created_tables: List[str] = []  # For rollback

    @abstractmethod
    def table_exists(self, table: str) -> bool:
        """Check whether a table exists in the destination."""
        pass

    @abstractmethod
    def create_table(self, descriptor: TableDescriptor) -> None:
        """
        Create a table with its primary and foreign keys.

        Raises:
            ConstraintCreationError: If the table or a constraint cannot be created
        """
        pass

    @abstractmethod
    def drop_table(self, table: str) -> None:
        """Drop a table from the destination."""
        pass

    @abstractmethod
    def load_table(self, descriptor: TableDescriptor, batches: Iterable[RowBatch]) -> LoadResult:
        """
        Insert all batches of a table.

        Load failures are recorded on the returned result rather than raised.

        Args:
            descriptor: Table being loaded
            batches: Row batches to insert

        Returns:
            LoadResult with row statistics
        """
        pass

    def import_all(
        self,
        extractor: BaseExtractor,
        descriptors: Optional[List[TableDescriptor]] = None
    ) -> Dict[str, LoadResult]:
        """
        Recreate and load every table provided by an extractor.

        Constraint failures propagate and stop the import. Tables created or
        loaded before the failure are left in place.

        Args:
            extractor: Source of descriptors and rows
            descriptors: Tables to import (all tables of the extractor when None)

        Returns:
            Dictionary of table -> LoadResult, in load order
        """
        if descriptors is None:
            descriptors = [extractor.describe_table(name) for name in extractor.list_tables()]

        ordered = order_tables(descriptors)
        logger.info(f"Creation order: {', '.join(d.name for d in ordered)}")

        if self.drop_existing:
            for descriptor in reversed(ordered):
                if self.table_exists(descriptor.name):
                    logger.info(f"Dropping existing table {descriptor.name}")
                    self.drop_table(descriptor.name)

        for descriptor in ordered:
            self.create_table(descriptor)
            self._created_tables.append(descriptor.name)

        results = {}
        for descriptor in ordered:
            logger.info(f"Loading {descriptor.name}...")
            results[descriptor.name] = self.load_table(descriptor, extractor.iter_rows(descriptor))

        return results

    def rollback(self) -> List[str]:
        """
        Drop the tables created by this loader, children first.

        Never called automatically.

        Returns:
            Names of dropped tables
        """
        dropped = []
        for table in reversed(self._created_tables):
            try:
                if self.table_exists(table):
                    self.drop_table(table)
                    dropped.append(table)
            except MigrationError as e:
                logger.error(f"Failed to drop {table}: {e}")

        self._created_tables = [t for t in self._created_tables if t not in dropped]
        logger.info(f"Rolled back {len(dropped)} table(s)")
        return dropped

    def validate_connection(self) -> bool:
        """Validate the connection to the destination."""
        return True

    @property
    def created_tables(self) -> List[str]:
        return self._created_tables.copy()
