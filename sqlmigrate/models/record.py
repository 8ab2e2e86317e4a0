"""Record models for migration data and verification results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class RowBatch:
    """An ordered slice of rows for one table."""
    table: str
    columns: List[str]
    rows: List[Tuple[Any, ...]] = field(default_factory=list)
    batch_number: int = 0

    def __len__(self) -> int:
        return len(self.rows)

    def as_dicts(self) -> List[Dict[str, Any]]:
        """Rows keyed by column name, as expected by executemany inserts."""
        return [dict(zip(self.columns, row)) for row in self.rows]


class VerificationStatus(str, Enum):
    """Outcome of comparing one table between source and destination."""
    MATCH = "match"
    MISMATCH = "mismatch"
    UNVERIFIED = "unverified"


@dataclass
class VerificationResult:
    """Row counts for one table on both sides of the migration."""
    table: str
    source_count: Optional[int] = None
    destination_count: Optional[int] = None
    error: Optional[str] = None

    @property
    def status(self) -> VerificationStatus:
        if self.error or self.source_count is None or self.destination_count is None:
            return VerificationStatus.UNVERIFIED
        if self.source_count == self.destination_count:
            return VerificationStatus.MATCH
        return VerificationStatus.MISMATCH

    @property
    def matched(self) -> bool:
        return self.status == VerificationStatus.MATCH

    def describe(self) -> str:
        """Human-readable one-line summary."""
        if self.status == VerificationStatus.UNVERIFIED:
            return f"{self.table}: could not verify ({self.error or 'count unavailable'})"
        if self.matched:
            return f"{self.table}: {self.destination_count} rows (match)"
        return (
            f"{self.table}: MISMATCH source={self.source_count} "
            f"destination={self.destination_count}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "table": self.table,
            "source_count": self.source_count,
            "destination_count": self.destination_count,
            "status": self.status.value,
            "error": self.error,
        }


@dataclass
class JoinCheckResult:
    """Result of the illustrative join query."""
    query: str
    destination_rows: Optional[int] = None
    source_rows: Optional[int] = None
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        if self.error or self.destination_rows is None:
            return False
        if self.source_rows is None:
            return True
        return self.source_rows == self.destination_rows

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "query": self.query,
            "destination_rows": self.destination_rows,
            "source_rows": self.source_rows,
            "passed": self.passed,
            "error": self.error,
        }


@dataclass
class VerificationReport:
    """All verification results for one run."""
    results: List[VerificationResult] = field(default_factory=list)
    join_check: Optional[JoinCheckResult] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def mismatches(self) -> List[VerificationResult]:
        return [r for r in self.results if r.status == VerificationStatus.MISMATCH]

    @property
    def unverified(self) -> List[VerificationResult]:
        return [r for r in self.results if r.status == VerificationStatus.UNVERIFIED]

    @property
    def all_matched(self) -> bool:
        return all(r.matched for r in self.results)

    def get_result(self, table: str) -> Optional[VerificationResult]:
        for result in self.results:
            if result.table == table:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "results": [r.to_dict() for r in self.results],
            "join_check": self.join_check.to_dict() if self.join_check else None,
            "checked_at": self.checked_at.isoformat(),
            "all_matched": self.all_matched,
        }
