"""CSV export folder extractor."""

import csv
import logging
import sys
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

from .base import BaseExtractor
from ..exceptions import ExportFormatError, RowShapeError
from ..models.record import RowBatch
from ..models.schema import SchemaDocument, TableDescriptor
from ..services.export_writer import SCHEMA_FILE_NAME, data_file_name, unescape_text
from ..services.type_mapping import coerce_value

logger = logging.getLogger(__name__)


def _raise_field_size_limit() -> None:
    """Lift the csv module's per-field limit so large BLOB values can be read."""
    limit = sys.maxsize
    while True:
        try:
            csv.field_size_limit(limit)
            return
        except OverflowError:
            limit //= 10


class CSVExtractor(BaseExtractor):
    """
    Extractor for an export folder written by ExportWriter.

    Supports:
    - Loading and validating the schema.json sidecar
    - Streaming each table's CSV data file in batches
    - Converting text back to typed values per declared column type
    - Null marker handling
    """

    def __init__(
        self,
        export_dir: str,
        batch_size: int = 1000,
        encoding: str = "utf-8",
        null_marker: str = "\\N"
    ):
        """
        Initialize the CSV extractor.

        Args:
            export_dir: Folder containing schema.json and the data files
            batch_size: Number of rows per streamed batch
            encoding: Data file encoding
            null_marker: Text that stands for NULL in the data files
        """
        super().__init__(batch_size=batch_size)
        self.export_dir = Path(export_dir)
        self.encoding = encoding
        self.null_marker = null_marker
        self._document: Optional[SchemaDocument] = None

    @property
    def document(self) -> SchemaDocument:
        """The export's schema document, loaded on first use."""
        if self._document is None:
            self._document = self.load_document()
        return self._document

    def load_document(self) -> SchemaDocument:
        """
        Load the schema sidecar from the export folder.

        Raises:
            ExportFormatError: If the folder or sidecar is missing or invalid
        """
        schema_path = self.export_dir / SCHEMA_FILE_NAME
        if not schema_path.is_file():
            raise ExportFormatError(f"No {SCHEMA_FILE_NAME} found in {self.export_dir}")

        document = SchemaDocument.from_json_file(str(schema_path))
        logger.info(f"Loaded schema for {len(document.tables)} table(s) from {schema_path}")
        return document

    def list_tables(self) -> List[str]:
        return self.document.table_names

    def describe_table(self, table_name: str) -> TableDescriptor:
        descriptor = self.document.get_table(table_name)
        if descriptor is None:
            raise ExportFormatError(f"Table {table_name} is not part of the export in {self.export_dir}")
        return descriptor

    def iter_rows(self, descriptor: TableDescriptor) -> Iterator[RowBatch]:
        """Stream a table's data file as typed row batches."""
        filepath = self.export_dir / (descriptor.data_file or data_file_name(descriptor.name))
        if not filepath.is_file():
            raise ExportFormatError(f"Data file for {descriptor.name} not found: {filepath}")

        types = [c.type for c in descriptor.columns]
        expected = descriptor.column_names
        width = len(types)
        batch: List[Tuple[Any, ...]] = []
        number = 0
        row_num = 0
        _raise_field_size_limit()

        with open(filepath, "r", encoding=self.encoding, newline="") as f:
            reader = csv.reader(f)
            try:
                header = next(reader, None)
                if header is None or len(header) != width:
                    raise RowShapeError(
                        f"Header of {filepath} has {len(header or [])} columns, expected {width}"
                    )
                # Values are matched to columns by position
                if header != expected:
                    raise RowShapeError(
                        f"Header of {filepath} is {header}, expected {expected}"
                    )

                for row_num, row in enumerate(reader, start=1):
                    if len(row) != width:
                        raise RowShapeError(
                            f"Row {row_num} of {filepath} has {len(row)} values, expected {width}"
                        )
                    batch.append(self._process_row(row, types, row_num, descriptor.name))

                    if len(batch) >= self.batch_size:
                        number += 1
                        yield RowBatch(descriptor.name, descriptor.column_names, batch, number)
                        batch = []
            except csv.Error as e:
                raise RowShapeError(f"Malformed CSV in {filepath} after row {row_num}: {e}") from e

        if batch:
            number += 1
            yield RowBatch(descriptor.name, descriptor.column_names, batch, number)

    def _process_row(
        self,
        row: List[str],
        types: List[str],
        row_num: int,
        table_name: str
    ) -> Tuple[Any, ...]:
        """Convert one CSV row into typed values."""
        values = []
        for value, declared in zip(row, types):
            if value == self.null_marker:
                values.append(None)
                continue
            value = unescape_text(value, self.null_marker)
            try:
                values.append(coerce_value(value, declared))
            except (ValueError, ArithmeticError) as e:
                raise RowShapeError(
                    f"Row {row_num} of {table_name}: cannot convert {value!r} to {declared or 'TEXT'}: {e}"
                ) from e
        return tuple(values)
