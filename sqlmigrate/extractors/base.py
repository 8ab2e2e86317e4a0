"""Base extractor interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional
from datetime import datetime
import logging

from ..models.record import RowBatch
from ..models.schema import TableDescriptor

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Result of extracting one table."""
    table: str
    descriptor: Optional[TableDescriptor] = None
    rows_extracted: int = 0
    data_file: Optional[str] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def success(self) -> bool:
        """Check if extraction was successful."""
        return len(self.errors) == 0 and self.descriptor is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "table": self.table,
            "rows_extracted": self.rows_extracted,
            "data_file": self.data_file,
            "errors": self.errors,
            "warnings": self.warnings,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


class BaseExtractor(ABC):
    """
    Base class for table extractors.

    Extractors describe tables and stream their rows as RowBatch objects,
    either from a live database or from an export folder.
    """

    def __init__(self, batch_size: int = 1000):
        """
        Initialize the extractor.

        Args:
            batch_size: Number of rows per streamed batch
        """
        self.batch_size = batch_size
        self._warnings: List[str] = []

    @abstractmethod
    def list_tables(self) -> List[str]:
        """
        List the tables available from this extractor.

        Returns:
            Table names in declared order
        """
        pass

    @abstractmethod
    def describe_table(self, table: str) -> TableDescriptor:
        """
        Describe a table's columns and keys.

        Args:
            table: Table name

        Returns:
            TableDescriptor for the table
        """
        pass

    @abstractmethod
    def iter_rows(self, descriptor: TableDescriptor) -> Iterator[RowBatch]:
        """
        Stream a table's rows in batches.

        Args:
            descriptor: Table to read

        Yields:
            RowBatch objects in table order
        """
        pass

    def add_warning(self, message: str) -> None:
        """Add a warning to the extraction."""
        self._warnings.append(message)
        logger.warning(f"Extraction warning: {message}")

    @property
    def warnings(self) -> List[str]:
        return self._warnings.copy()

    def reset(self) -> None:
        """Reset the extractor state."""
        self._warnings = []
