"""Migration execution models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import datetime, timezone
import json
import uuid


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MigrationStatus(str, Enum):
    """Status of a migration run."""
    PENDING = "pending"
    EXPORTING = "exporting"
    IMPORTING = "importing"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"


@dataclass
class MigrationStep:
    """A single step in a migration process."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    table: str = ""
    status: MigrationStatus = MigrationStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    rows_processed: int = 0
    rows_succeeded: int = 0
    rows_failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "table": self.table,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "rows_processed": self.rows_processed,
            "rows_succeeded": self.rows_succeeded,
            "rows_failed": self.rows_failed,
            "errors": self.errors,
            "warnings": self.warnings,
        }

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


@dataclass
class MigrationRun:
    """A complete migration run."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    status: MigrationStatus = MigrationStatus.PENDING

    source_path: str = ""
    destination: str = ""  # Rendered destination URL, password hidden
    export_dir: str = ""

    # Timing
    created_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Progress
    steps: List[MigrationStep] = field(default_factory=list)
    current_step: Optional[str] = None

    # Statistics
    total_rows_processed: int = 0
    total_rows_succeeded: int = 0
    total_rows_failed: int = 0

    errors: List[Dict[str, Any]] = field(default_factory=list)
    verification: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "source_path": self.source_path,
            "destination": self.destination,
            "export_dir": self.export_dir,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "steps": [s.to_dict() for s in self.steps],
            "current_step": self.current_step,
            "total_rows_processed": self.total_rows_processed,
            "total_rows_succeeded": self.total_rows_succeeded,
            "total_rows_failed": self.total_rows_failed,
            "errors": self.errors,
            "verification": self.verification,
            "metadata": self.metadata,
        }

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def add_step(self, name: str, table: str) -> MigrationStep:
        """Add a new step to the migration."""
        step = MigrationStep(name=name, table=table)
        self.steps.append(step)
        return step

    def failed_steps(self) -> List[MigrationStep]:
        return [s for s in self.steps if s.status == MigrationStatus.FAILED]

    def update_totals(self) -> None:
        """Update total statistics from steps."""
        self.total_rows_processed = sum(s.rows_processed for s in self.steps)
        self.total_rows_succeeded = sum(s.rows_succeeded for s in self.steps)
        self.total_rows_failed = sum(s.rows_failed for s in self.steps)


@dataclass
class MigrationConfig:
    """Configuration for a migration."""
    name: str = "sqlite-migration"

    # Source
    source_path: str = ""

    # Destination: either a full SQLAlchemy URL or a SQL Server instance + database
    destination_url: Optional[str] = None
    destination_server: Optional[str] = None
    destination_database: Optional[str] = None
    destination_driver: str = "ODBC Driver 17 for SQL Server"
    destination_username: Optional[str] = None
    destination_password: Optional[str] = None

    # Export folder
    export_dir: str = "./export"
    encoding: str = "utf-8"
    null_marker: str = "\\N"

    # Tables to migrate (empty = all) and to verify (empty = same as tables)
    tables: List[str] = field(default_factory=list)
    verify_tables: List[str] = field(default_factory=list)
    join_query: Optional[str] = None

    # Execution options
    batch_size: int = 1000
    drop_existing: bool = False
    save_report: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (the password is never included)."""
        return {
            "name": self.name,
            "source_path": self.source_path,
            "destination_url": self.destination_url,
            "destination_server": self.destination_server,
            "destination_database": self.destination_database,
            "destination_driver": self.destination_driver,
            "destination_username": self.destination_username,
            "export_dir": self.export_dir,
            "encoding": self.encoding,
            "null_marker": self.null_marker,
            "tables": self.tables,
            "verify_tables": self.verify_tables,
            "join_query": self.join_query,
            "batch_size": self.batch_size,
            "drop_existing": self.drop_existing,
            "save_report": self.save_report,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create from dictionary representation."""
        return cls(
            name=data.get("name", "sqlite-migration"),
            source_path=data.get("source_path", ""),
            destination_url=data.get("destination_url"),
            destination_server=data.get("destination_server"),
            destination_database=data.get("destination_database"),
            destination_driver=data.get("destination_driver", "ODBC Driver 17 for SQL Server"),
            destination_username=data.get("destination_username"),
            destination_password=data.get("destination_password"),
            export_dir=data.get("export_dir", "./export"),
            encoding=data.get("encoding", "utf-8"),
            null_marker=data.get("null_marker", "\\N"),
            tables=list(data.get("tables", [])),
            verify_tables=list(data.get("verify_tables", [])),
            join_query=data.get("join_query"),
            batch_size=data.get("batch_size", 1000),
            drop_existing=data.get("drop_existing", False),
            save_report=data.get("save_report", True),
        )

    @classmethod
    def from_json_file(cls, filepath: str) -> "MigrationConfig":
        """Load configuration from a JSON file."""
        with open(filepath, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def tables_to_verify(self, exported: Optional[List[str]] = None) -> List[str]:
        """Tables to compare: explicit verify list, else the table list, else what was exported."""
        if self.verify_tables:
            return list(self.verify_tables)
        if self.tables:
            return list(self.tables)
        return list(exported or [])
