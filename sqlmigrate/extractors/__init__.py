"""Table extractors for the source database and export folders."""

from .base import BaseExtractor, ExtractionResult
from .csv_extractor import CSVExtractor
from .sqlite_extractor import SQLiteExtractor

__all__ = [
    "BaseExtractor",
    "ExtractionResult",
    "CSVExtractor",
    "SQLiteExtractor",
]
