"""Pydantic models for the on-disk schema sidecar (schema.json)."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..exceptions import ExportFormatError
from .schema import (
    ColumnDefinition,
    ForeignKeyReference,
    SchemaDocument,
    TableDescriptor,
)

FORMAT_VERSION = 1


class ColumnEntry(BaseModel):
    name: str
    type: str = ""
    nullable: bool = True
    default: Optional[str] = None
    primary_key_position: int = Field(default=0, ge=0)


class ForeignKeyEntry(BaseModel):
    columns: List[str] = Field(min_length=1)
    referenced_table: str
    referenced_columns: List[str] = Field(min_length=1)
    on_update: Optional[str] = None
    on_delete: Optional[str] = None

    @model_validator(mode="after")
    def check_column_pairs(self) -> "ForeignKeyEntry":
        if len(self.columns) != len(self.referenced_columns):
            raise ValueError("columns and referenced_columns must have the same length")
        return self


class TableEntry(BaseModel):
    name: str
    columns: List[ColumnEntry] = Field(min_length=1)
    primary_key: List[str] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyEntry] = Field(default_factory=list)
    row_count: Optional[int] = None
    data_file: str

    @model_validator(mode="after")
    def check_key_columns(self) -> "TableEntry":
        names = {c.name for c in self.columns}
        missing = [c for c in self.primary_key if c not in names]
        for fk in self.foreign_keys:
            missing.extend(c for c in fk.columns if c not in names)
        if missing:
            raise ValueError(f"key columns not declared on table {self.name}: {missing}")
        return self


class SchemaFile(BaseModel):
    """Top-level structure of schema.json."""
    format_version: int = FORMAT_VERSION
    source: str = ""
    exported_at: datetime
    tables: List[TableEntry] = Field(default_factory=list)

    @field_validator("format_version")
    @classmethod
    def check_version(cls, value: int) -> int:
        if value != FORMAT_VERSION:
            raise ValueError(f"unsupported format_version {value}, expected {FORMAT_VERSION}")
        return value

    @classmethod
    def from_document(cls, document: SchemaDocument) -> "SchemaFile":
        try:
            return cls.model_validate(document.to_dict())
        except ValidationError as e:
            raise ExportFormatError(f"Schema document is not exportable: {e}") from e

    @classmethod
    def from_json_file(cls, filepath: str) -> "SchemaFile":
        """
        Read and validate a schema sidecar.

        Raises:
            ExportFormatError: If the file cannot be read or is invalid
        """
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return cls.model_validate_json(f.read())
        except OSError as e:
            raise ExportFormatError(f"Cannot read schema file {filepath}: {e}") from e
        except ValidationError as e:
            raise ExportFormatError(f"Invalid schema file {filepath}: {e}") from e

    def to_document(self) -> SchemaDocument:
        tables = []
        for entry in self.tables:
            tables.append(TableDescriptor(
                name=entry.name,
                columns=[ColumnDefinition(**c.model_dump()) for c in entry.columns],
                primary_key=list(entry.primary_key),
                foreign_keys=[ForeignKeyReference(**fk.model_dump()) for fk in entry.foreign_keys],
                row_count=entry.row_count,
                data_file=entry.data_file,
            ))
        return SchemaDocument(source=self.source, exported_at=self.exported_at, tables=tables)
