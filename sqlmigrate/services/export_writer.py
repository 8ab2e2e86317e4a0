"""Writer for the export folder: one CSV per table plus schema.json."""

import base64
import csv
import logging
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Iterable, Optional

from ..exceptions import RowShapeError
from ..models.record import RowBatch
from ..models.schema import SchemaDocument, TableDescriptor

logger = logging.getLogger(__name__)

SCHEMA_FILE_NAME = "schema.json"


def data_file_name(table: str) -> str:
    """File name of a table's data file inside the export folder."""
    safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in table)
    return f"{safe}.csv"


def _is_marker_like(text: str, null_marker: str) -> bool:
    """True for the marker itself or the marker preceded only by backslashes."""
    if not text.endswith(null_marker):
        return False
    prefix = text[:len(text) - len(null_marker)]
    return all(ch == "\\" for ch in prefix)


def escape_text(text: str, null_marker: str) -> str:
    """Escape a real value that would otherwise read back as NULL."""
    if _is_marker_like(text, null_marker):
        return "\\" + text
    return text


def unescape_text(text: str, null_marker: str) -> str:
    """Reverse escape_text. The bare null marker must be handled by the caller."""
    if text != null_marker and _is_marker_like(text, null_marker):
        return text[1:]
    return text


class ExportWriter:
    """
    Writes exported tables to a folder.

    Value encoding:
    - None is written as the null marker (``\\N`` by default)
    - text that reads like the marker (the marker after zero or more
      backslashes) gets one more leading backslash
    - bytes are written as base64
    - booleans are written as 1/0
    - dates and times are written in ISO 8601
    """

    def __init__(
        self,
        export_dir: str,
        encoding: str = "utf-8",
        null_marker: str = "\\N"
    ):
        self.export_dir = Path(export_dir)
        self.encoding = encoding
        self.null_marker = null_marker

    def prepare(self) -> Path:
        """Create the export folder if needed."""
        self.export_dir.mkdir(parents=True, exist_ok=True)
        return self.export_dir

    @property
    def schema_path(self) -> Path:
        return self.export_dir / SCHEMA_FILE_NAME

    def encode_value(self, value: Any) -> str:
        """Encode a single value as CSV text."""
        if value is None:
            return self.null_marker
        if isinstance(value, (bytes, bytearray, memoryview)):
            return base64.b64encode(bytes(value)).decode("ascii")
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        return escape_text(str(value), self.null_marker)

    def write_table(
        self,
        descriptor: TableDescriptor,
        batches: Iterable[RowBatch],
        file_name: Optional[str] = None
    ) -> int:
        """
        Write all rows of a table to its data file.

        Args:
            descriptor: Table being written
            batches: Row batches in source order
            file_name: Override for the data file name

        Returns:
            Number of rows written
        """
        self.prepare()
        descriptor.data_file = file_name or data_file_name(descriptor.name)
        filepath = self.export_dir / descriptor.data_file
        # Rows go to a temporary file that only replaces the data file once complete
        partial = filepath.with_name(filepath.name + ".part")
        width = len(descriptor.columns)
        written = 0

        try:
            with open(partial, "w", encoding=self.encoding, newline="") as f:
                writer = csv.writer(f)
                writer.writerow(descriptor.column_names)

                for batch in batches:
                    for row in batch.rows:
                        if len(row) != width:
                            raise RowShapeError(
                                f"Row {written + 1} of {descriptor.name} has {len(row)} values, expected {width}"
                            )
                        writer.writerow([self.encode_value(v) for v in row])
                        written += 1
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        partial.replace(filepath)
        descriptor.row_count = written
        logger.debug(f"Wrote {written} rows to {filepath}")
        return written

    def write_schema(self, document: SchemaDocument) -> Path:
        """Write the schema sidecar."""
        self.prepare()
        document.to_json_file(str(self.schema_path))
        logger.info(f"Wrote schema for {len(document.tables)} table(s) to {self.schema_path}")
        return self.schema_path
