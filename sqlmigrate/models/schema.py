"""Schema models describing exported tables."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass
class ColumnDefinition:
    """Definition of a column in a table."""
    name: str
    type: str = ""  # Declared type as written in the source DDL
    nullable: bool = True
    default: Optional[str] = None
    primary_key_position: int = 0  # 0 when not part of the primary key

    @property
    def is_primary_key(self) -> bool:
        return self.primary_key_position > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "type": self.type,
            "nullable": self.nullable,
            "default": self.default,
            "primary_key_position": self.primary_key_position,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnDefinition":
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            type=data.get("type") or "",
            nullable=data.get("nullable", True),
            default=data.get("default"),
            primary_key_position=data.get("primary_key_position", 0),
        )


@dataclass
class ForeignKeyReference:
    """A foreign key from one or more columns to a referenced table."""
    columns: List[str]
    referenced_table: str
    referenced_columns: List[str]
    on_update: Optional[str] = None
    on_delete: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "columns": list(self.columns),
            "referenced_table": self.referenced_table,
            "referenced_columns": list(self.referenced_columns),
            "on_update": self.on_update,
            "on_delete": self.on_delete,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ForeignKeyReference":
        """Create from dictionary representation."""
        return cls(
            columns=list(data.get("columns", [])),
            referenced_table=data["referenced_table"],
            referenced_columns=list(data.get("referenced_columns", [])),
            on_update=data.get("on_update"),
            on_delete=data.get("on_delete"),
        )


@dataclass
class TableDescriptor:
    """
    Structural metadata for one table, independent of its rows.

    Produced once by introspection at export time and consumed once
    when the table is recreated at import time.
    """
    name: str
    columns: List[ColumnDefinition] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)  # In key order
    foreign_keys: List[ForeignKeyReference] = field(default_factory=list)
    row_count: Optional[int] = None
    data_file: Optional[str] = None

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def dependencies(self) -> List[str]:
        """Tables this table references, excluding itself, in declared order."""
        deps = []
        seen = {self.name.lower()}
        for fk in self.foreign_keys:
            if fk.referenced_table.lower() not in seen:
                seen.add(fk.referenced_table.lower())
                deps.append(fk.referenced_table)
        return deps

    def get_column(self, name: str) -> Optional[ColumnDefinition]:
        """Get a column by name."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
            "primary_key": list(self.primary_key),
            "foreign_keys": [fk.to_dict() for fk in self.foreign_keys],
            "row_count": self.row_count,
            "data_file": self.data_file,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableDescriptor":
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            columns=[ColumnDefinition.from_dict(c) for c in data.get("columns", [])],
            primary_key=list(data.get("primary_key", [])),
            foreign_keys=[ForeignKeyReference.from_dict(fk) for fk in data.get("foreign_keys", [])],
            row_count=data.get("row_count"),
            data_file=data.get("data_file"),
        )


@dataclass
class SchemaDocument:
    """The schema sidecar of an export: every exported table, in export order."""
    source: str = ""
    exported_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tables: List[TableDescriptor] = field(default_factory=list)

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    def get_table(self, name: str) -> Optional[TableDescriptor]:
        """Get a table descriptor by name (case-insensitive)."""
        for table in self.tables:
            if table.name.lower() == name.lower():
                return table
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "source": self.source,
            "exported_at": self.exported_at.isoformat(),
            "tables": [t.to_dict() for t in self.tables],
        }

    def to_json_file(self, filepath: str) -> None:
        """Save the document as a validated schema sidecar."""
        from .manifest import SchemaFile

        with open(filepath, "w", encoding="utf-8") as f:
            f.write(SchemaFile.from_document(self).model_dump_json(indent=2))

    @classmethod
    def from_json_file(cls, filepath: str) -> "SchemaDocument":
        """Load and validate a schema sidecar."""
        from .manifest import SchemaFile

        return SchemaFile.from_json_file(filepath).to_document()
