"""Loaders for destination databases."""

from .base import BaseLoader, LoadResult
from .sql_loader import SQLLoader

__all__ = [
    "BaseLoader",
    "LoadResult",
    "SQLLoader",
]
