"""Tests for schema descriptors and the schema.json sidecar."""

import json

import pytest

from sqlmigrate.exceptions import ExportFormatError
from sqlmigrate.models.manifest import FORMAT_VERSION, SchemaFile
from sqlmigrate.models.migration import MigrationConfig
from sqlmigrate.models.record import (
    JoinCheckResult,
    RowBatch,
    VerificationReport,
    VerificationResult,
    VerificationStatus,
)
from sqlmigrate.models.schema import (
    ColumnDefinition,
    ForeignKeyReference,
    SchemaDocument,
    TableDescriptor,
)


def _order_items() -> TableDescriptor:
    return TableDescriptor(
        name="OrderItems",
        columns=[
            ColumnDefinition("LineNumber", "INTEGER", nullable=False, primary_key_position=2),
            ColumnDefinition("OrderId", "INTEGER", nullable=False, primary_key_position=1),
            ColumnDefinition("ParentItem", "INTEGER"),
        ],
        primary_key=["OrderId", "LineNumber"],
        foreign_keys=[
            ForeignKeyReference(["OrderId"], "Orders", ["OrderId"], on_delete="CASCADE"),
            ForeignKeyReference(["OrderId", "ParentItem"], "OrderItems", ["OrderId", "LineNumber"]),
            ForeignKeyReference(["OrderId"], "Orders", ["OrderId"]),
        ],
        data_file="OrderItems.csv",
    )


class TestTableDescriptor:
    def test_dependencies_exclude_self_and_duplicates(self):
        assert _order_items().dependencies == ["Orders"]

    def test_primary_key_order_is_key_order(self):
        descriptor = _order_items()
        assert descriptor.primary_key == ["OrderId", "LineNumber"]
        assert descriptor.get_column("OrderId").is_primary_key
        assert not descriptor.get_column("ParentItem").is_primary_key

    def test_dict_round_trip_keeps_order(self):
        descriptor = _order_items()
        restored = TableDescriptor.from_dict(descriptor.to_dict())
        assert restored == descriptor


class TestSchemaDocument:
    def test_get_table_is_case_insensitive(self):
        document = SchemaDocument(tables=[_order_items()])
        assert document.get_table("orderitems").name == "OrderItems"
        assert document.get_table("Missing") is None

    def test_json_file_round_trip(self, tmp_path):
        document = SchemaDocument(source="/data/app.db", tables=[_order_items()])
        path = tmp_path / "schema.json"
        document.to_json_file(str(path))

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["format_version"] == FORMAT_VERSION

        restored = SchemaDocument.from_json_file(str(path))
        assert restored.source == "/data/app.db"
        assert restored.tables[0].primary_key == ["OrderId", "LineNumber"]
        assert [fk.referenced_table for fk in restored.tables[0].foreign_keys] == [
            "Orders", "OrderItems", "Orders"
        ]
        assert restored.tables[0].foreign_keys[0].on_delete == "CASCADE"


class TestSchemaFileValidation:
    def _write(self, tmp_path, payload) -> str:
        path = tmp_path / "schema.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return str(path)

    def _payload(self, **table_overrides):
        table = {
            "name": "Orders",
            "columns": [{"name": "OrderId", "type": "INTEGER", "primary_key_position": 1}],
            "primary_key": ["OrderId"],
            "data_file": "Orders.csv",
        }
        table.update(table_overrides)
        return {
            "format_version": FORMAT_VERSION,
            "exported_at": "2024-05-01T12:00:00+00:00",
            "tables": [table],
        }

    def test_valid_file_loads(self, tmp_path):
        schema = SchemaFile.from_json_file(self._write(tmp_path, self._payload()))
        assert schema.to_document().table_names == ["Orders"]

    def test_unsupported_version_rejected(self, tmp_path):
        payload = self._payload()
        payload["format_version"] = 99
        with pytest.raises(ExportFormatError):
            SchemaFile.from_json_file(self._write(tmp_path, payload))

    def test_undeclared_key_column_rejected(self, tmp_path):
        payload = self._payload(primary_key=["Missing"])
        with pytest.raises(ExportFormatError, match="Invalid schema file"):
            SchemaFile.from_json_file(self._write(tmp_path, payload))

    def test_foreign_key_column_count_mismatch_rejected(self, tmp_path):
        payload = self._payload(foreign_keys=[{
            "columns": ["OrderId"],
            "referenced_table": "Customers",
            "referenced_columns": ["CustomerId", "Region"],
        }])
        with pytest.raises(ExportFormatError):
            SchemaFile.from_json_file(self._write(tmp_path, payload))

    def test_missing_file_rejected(self, tmp_path):
        with pytest.raises(ExportFormatError, match="Cannot read"):
            SchemaFile.from_json_file(str(tmp_path / "nope.json"))


class TestRecords:
    def test_row_batch_as_dicts(self):
        batch = RowBatch("Customers", ["CustomerId", "Name"], [(1, "Ada"), (2, None)])
        assert len(batch) == 2
        assert batch.as_dicts()[1] == {"CustomerId": 2, "Name": None}

    def test_verification_statuses(self):
        assert VerificationResult("A", 3, 3).status == VerificationStatus.MATCH
        assert VerificationResult("A", 3, 2).status == VerificationStatus.MISMATCH
        assert VerificationResult("A", 3, None).status == VerificationStatus.UNVERIFIED

    def test_describe_unverified(self):
        result = VerificationResult("Reviews", 2, None, error="destination: no such table: Reviews")
        assert result.describe().startswith("Reviews: could not verify")

    def test_report_all_matched(self):
        report = VerificationReport(results=[VerificationResult("A", 1, 1), VerificationResult("B", 2, None)])
        assert not report.all_matched
        assert [r.table for r in report.unverified] == ["B"]
        assert report.get_result("A").matched

    def test_join_without_source_count_passes(self):
        assert JoinCheckResult("q", destination_rows=5).passed
        assert not JoinCheckResult("q", destination_rows=5, source_rows=4).passed
        assert not JoinCheckResult("q", error="boom").passed


class TestMigrationConfig:
    def test_password_never_serialized(self):
        config = MigrationConfig(destination_username="sa", destination_password="secret")
        assert "destination_password" not in config.to_dict()

    def test_tables_to_verify_precedence(self):
        assert MigrationConfig().tables_to_verify(["A", "B"]) == ["A", "B"]
        assert MigrationConfig(tables=["A"]).tables_to_verify(["A", "B"]) == ["A"]
        assert MigrationConfig(tables=["A"], verify_tables=["B"]).tables_to_verify(["A"]) == ["B"]

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"source_path": "app.db", "batch_size": 50}), encoding="utf-8")
        config = MigrationConfig.from_json_file(str(path))
        assert config.source_path == "app.db"
        assert config.batch_size == 50
        assert config.export_dir == "./export"
