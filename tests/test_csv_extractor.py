"""Tests for reading an export folder back."""

import csv
from datetime import date
from pathlib import Path

import pytest

from sqlmigrate.exceptions import ExportFormatError, RowShapeError
from sqlmigrate.extractors import csv_extractor
from sqlmigrate.extractors.csv_extractor import CSVExtractor
from sqlmigrate.extractors.sqlite_extractor import SQLiteExtractor
from sqlmigrate.models.record import RowBatch
from sqlmigrate.models.schema import ColumnDefinition, SchemaDocument, TableDescriptor
from sqlmigrate.services.export_writer import ExportWriter


@pytest.fixture
def exported(source_engine, export_dir) -> str:
    SQLiteExtractor(source_engine).export_all(ExportWriter(export_dir))
    return export_dir


class TestCSVExtractor:
    def test_lists_exported_tables(self, exported):
        reader = CSVExtractor(exported)
        assert reader.list_tables() == ["OrderItems", "Customers", "Orders", "Reviews"]

    def test_values_are_typed(self, exported):
        reader = CSVExtractor(exported)
        rows = [row for batch in reader.iter_rows(reader.describe_table("Customers")) for row in batch.rows]
        assert rows[0] == (1, "Ada Lovelace", "ada@example.com", True)
        assert rows[1] == (2, 'Grace "Amazing" Hopper, RADM', None, True)
        assert rows[2][3] is False

    def test_dates_and_nulls(self, exported):
        reader = CSVExtractor(exported)
        rows = [row for batch in reader.iter_rows(reader.describe_table("Orders")) for row in batch.rows]
        assert rows[0][2] == date(2024, 1, 5)
        assert rows[4][2] is None
        assert rows[0][3] == pytest.approx(19.99)

    def test_batching(self, exported):
        reader = CSVExtractor(exported, batch_size=2)
        batches = list(reader.iter_rows(reader.describe_table("Orders")))
        assert [len(b) for b in batches] == [2, 2, 1]

    def test_unknown_table(self, exported):
        with pytest.raises(ExportFormatError):
            CSVExtractor(exported).describe_table("Ghost")

    def test_missing_schema(self, tmp_path):
        with pytest.raises(ExportFormatError, match="schema.json"):
            CSVExtractor(str(tmp_path)).list_tables()

    def test_short_row_rejected(self, exported):
        path = Path(exported) / "Customers.csv"
        with open(path, "a", encoding="utf-8", newline="") as f:
            f.write("4,Short Row\r\n")

        reader = CSVExtractor(exported)
        with pytest.raises(RowShapeError, match="Row 4"):
            list(reader.iter_rows(reader.describe_table("Customers")))

    def test_unconvertible_value_rejected(self, exported):
        path = Path(exported) / "Customers.csv"
        with open(path, "a", encoding="utf-8", newline="") as f:
            f.write("four,Bad Id,\\N,1\r\n")

        reader = CSVExtractor(exported)
        with pytest.raises(RowShapeError, match="cannot convert"):
            list(reader.iter_rows(reader.describe_table("Customers")))

    def test_reordered_header_rejected(self, exported):
        path = Path(exported) / "Customers.csv"
        with open(path, "r", encoding="utf-8", newline="") as f:
            body = f.read().split("\r\n", 1)[1]
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write("Name,CustomerId,Email,IsActive\r\n" + body)

        reader = CSVExtractor(exported)
        with pytest.raises(RowShapeError, match="Header of .* is \\['Name', 'CustomerId'"):
            list(reader.iter_rows(reader.describe_table("Customers")))

    def test_malformed_csv_is_a_row_shape_error(self, exported, monkeypatch):
        previous = csv.field_size_limit()
        monkeypatch.setattr(csv_extractor, "_raise_field_size_limit", lambda: csv.field_size_limit(16))
        try:
            reader = CSVExtractor(exported)
            with pytest.raises(RowShapeError, match="Malformed CSV") as excinfo:
                list(reader.iter_rows(reader.describe_table("Customers")))
        finally:
            csv.field_size_limit(previous)
        assert isinstance(excinfo.value.__cause__, csv.Error)

    def test_large_fields_are_read(self, tmp_path):
        descriptor = TableDescriptor(
            name="Attachments",
            columns=[ColumnDefinition("Id", "INTEGER", False, None, 1), ColumnDefinition("Payload", "BLOB")],
            primary_key=["Id"],
        )
        payload = b"\x00\xff" * 150_000
        folder = str(tmp_path / "attachments")
        writer = ExportWriter(folder)
        writer.write_table(descriptor, [RowBatch("Attachments", descriptor.column_names, [(1, payload)], 1)])
        writer.write_schema(SchemaDocument(tables=[descriptor]))

        reader = CSVExtractor(folder)
        rows = [row for batch in reader.iter_rows(reader.describe_table("Attachments")) for row in batch.rows]
        assert rows == [(1, payload)]


class TestNullMarker:
    def test_text_that_looks_like_the_marker_round_trips(self, tmp_path):
        descriptor = TableDescriptor(
            name="Notes",
            columns=[ColumnDefinition("Id", "INTEGER", False, None, 1), ColumnDefinition("Body", "TEXT")],
            primary_key=["Id"],
        )
        rows = [(1, "\\N"), (2, "\\\\N"), (3, None), (4, "N"), (5, "a\\N"), (6, "\\\\\\N")]
        folder = str(tmp_path / "notes")
        writer = ExportWriter(folder)
        writer.write_table(descriptor, [RowBatch("Notes", descriptor.column_names, rows, 1)])
        writer.write_schema(SchemaDocument(tables=[descriptor]))

        with open(Path(folder) / "Notes.csv", "r", encoding="utf-8", newline="") as f:
            written = [line[1] for line in csv.reader(f)][1:]
        assert written == ["\\\\N", "\\\\\\N", "\\N", "N", "a\\N", "\\\\\\\\N"]

        reader = CSVExtractor(folder)
        read = [row for batch in reader.iter_rows(reader.describe_table("Notes")) for row in batch.rows]
        assert read == rows

    def test_custom_marker(self, tmp_path):
        descriptor = TableDescriptor(name="Notes", columns=[ColumnDefinition("Body", "TEXT")])
        rows = [("NULL",), (None,), ("\\NULL",)]
        folder = str(tmp_path / "notes")
        writer = ExportWriter(folder, null_marker="NULL")
        writer.write_table(descriptor, [RowBatch("Notes", descriptor.column_names, rows, 1)])
        writer.write_schema(SchemaDocument(tables=[descriptor]))

        reader = CSVExtractor(folder, null_marker="NULL")
        read = [row for batch in reader.iter_rows(reader.describe_table("Notes")) for row in batch.rows]
        assert read == rows
