"""End-to-end tests of the migration orchestrator."""

import json
import sqlite3
from contextlib import closing
from pathlib import Path

import pytest
from sqlalchemy import inspect, text

from sqlmigrate.exceptions import IntrospectionError, SourceNotFoundError
from sqlmigrate.extractors.sqlite_extractor import SQLiteExtractor
from sqlmigrate.models.migration import MigrationConfig, MigrationStatus
from sqlmigrate.orchestrator import MigrationOrchestrator


class TestRunMigration:
    def test_customers_and_orders(self, migration_config, source_engine, destination_engine):
        migration_config.tables = ["Customers", "Orders"]
        orchestrator = MigrationOrchestrator(migration_config, source_engine, destination_engine)
        run = orchestrator.run_migration()

        assert run.status == MigrationStatus.COMPLETED
        report = orchestrator.verification
        assert report.get_result("Customers").destination_count == 3
        assert report.get_result("Orders").destination_count == 5
        assert report.all_matched
        assert report.join_check.destination_rows == 5
        assert orchestrator.succeeded

    def test_whole_database(self, migration_config, source_engine, destination_engine):
        orchestrator = MigrationOrchestrator(migration_config, source_engine, destination_engine)
        run = orchestrator.run_migration()

        assert run.status == MigrationStatus.COMPLETED
        assert list(orchestrator.load_results) == ["Customers", "Orders", "OrderItems", "Reviews"]
        assert orchestrator.succeeded
        assert run.total_rows_failed == 0

    def test_report_written(self, migration_config, source_engine, destination_engine):
        orchestrator = MigrationOrchestrator(migration_config, source_engine, destination_engine)
        run = orchestrator.run_migration()

        reports = list((Path(migration_config.export_dir) / "reports").glob("migration_report_*.json"))
        assert len(reports) == 1
        saved = json.loads(reports[0].read_text(encoding="utf-8"))
        assert saved["id"] == run.id
        assert saved["status"] == "completed"
        assert saved["verification"]["all_matched"] is True

    def test_table_failing_introspection_is_unverified(
        self, migration_config, source_engine, destination_engine, monkeypatch
    ):
        original = SQLiteExtractor.describe_table

        def locked(self, table_name):
            if table_name == "Reviews":
                raise IntrospectionError(table_name, "database table is locked")
            return original(self, table_name)

        monkeypatch.setattr(SQLiteExtractor, "describe_table", locked)
        orchestrator = MigrationOrchestrator(migration_config, source_engine, destination_engine)
        run = orchestrator.run_migration()

        assert run.status == MigrationStatus.COMPLETED
        assert "Reviews" not in orchestrator.document.table_names
        assert orchestrator.load_results["Orders"].rows_loaded == 5

        reviews = orchestrator.verification.get_result("Reviews")
        assert "could not verify" in reviews.describe()
        assert orchestrator.verification.get_result("Customers").matched
        assert not orchestrator.succeeded

    def test_missing_source_connects_to_nothing(self, tmp_path, destination_url):
        missing = tmp_path / "missing.db"
        config = MigrationConfig(
            source_path=str(missing),
            destination_url=destination_url,
            export_dir=str(tmp_path / "export"),
        )
        orchestrator = MigrationOrchestrator(config)

        with pytest.raises(SourceNotFoundError):
            orchestrator.run_migration()

        assert not missing.exists()
        assert orchestrator._source_engine is None
        assert orchestrator._destination_engine is None
        assert not (tmp_path / "destination.db").exists()

    def test_existing_destination_table_fails_run(self, migration_config, source_engine, destination_engine):
        MigrationOrchestrator(migration_config, source_engine, destination_engine).run_migration()

        second = MigrationOrchestrator(migration_config, source_engine, destination_engine)
        run = second.run_migration()

        assert run.status == MigrationStatus.FAILED
        assert "already exists" in run.errors[0]["error"]
        assert run.failed_steps()[0].name == "Create Customers"
        assert not second.succeeded


class TestPhases:
    def test_export_then_import_then_verify(self, migration_config, source_engine, destination_engine):
        export = MigrationOrchestrator(migration_config, source_engine, destination_engine)
        assert export.run_export().status == MigrationStatus.COMPLETED
        assert (Path(migration_config.export_dir) / "schema.json").is_file()
        assert not inspect(destination_engine).get_table_names()

        importer = MigrationOrchestrator(migration_config, source_engine, destination_engine)
        assert importer.run_import().status == MigrationStatus.COMPLETED

        verifier = MigrationOrchestrator(migration_config, source_engine, destination_engine)
        run = verifier.run_verify()
        assert run.status == MigrationStatus.COMPLETED
        assert verifier.verification.all_matched

    def test_import_without_export_fails(self, migration_config, destination_engine):
        orchestrator = MigrationOrchestrator(migration_config, destination_engine=destination_engine)
        run = orchestrator.run_import()
        assert run.status == MigrationStatus.FAILED
        assert "schema.json" in run.errors[0]["error"]

    def test_rollback(self, migration_config, source_engine, destination_engine):
        orchestrator = MigrationOrchestrator(migration_config, source_engine, destination_engine)
        orchestrator.run_migration()

        dropped = orchestrator.rollback()
        assert set(dropped) == {"Customers", "Orders", "OrderItems", "Reviews"}
        assert orchestrator.run.status == MigrationStatus.ROLLED_BACK
        assert inspect(destination_engine).get_table_names() == []


def _make_source(path: Path, ddl: str, inserts) -> str:
    with closing(sqlite3.connect(str(path))) as conn:
        conn.executescript(ddl)
        for statement, rows in inserts:
            conn.executemany(statement, rows)
        conn.commit()
    return str(path)


class TestSourceVariants:
    def test_lowercase_foreign_key_target(self, tmp_path, destination_url, destination_engine):
        source = _make_source(
            tmp_path / "lowercase.db",
            "CREATE TABLE Orders ("
            " OrderId INTEGER PRIMARY KEY,"
            " CustomerId INTEGER NOT NULL REFERENCES customers(customerid));"
            "CREATE TABLE Customers (CustomerId INTEGER PRIMARY KEY, Name TEXT);",
            [
                ("INSERT INTO Customers VALUES (?, ?)", [(1, "Ada"), (2, "Grace")]),
                ("INSERT INTO Orders VALUES (?, ?)", [(10, 1), (11, 2), (12, 2)]),
            ],
        )
        config = MigrationConfig(
            source_path=source,
            destination_url=destination_url,
            export_dir=str(tmp_path / "export"),
            save_report=False,
        )
        orchestrator = MigrationOrchestrator(config, destination_engine=destination_engine)
        run = orchestrator.run_migration()

        assert run.status == MigrationStatus.COMPLETED
        assert list(orchestrator.load_results) == ["Customers", "Orders"]
        fks = inspect(destination_engine).get_foreign_keys("Orders")
        assert fks[0]["referred_table"] == "Customers"
        assert fks[0]["referred_columns"] == ["CustomerId"]
        assert orchestrator.verification.join_check.destination_rows == 3
        assert orchestrator.succeeded

    def test_large_blob_survives(self, tmp_path, destination_url, destination_engine):
        payload = bytes(range(256)) * 800
        source = _make_source(
            tmp_path / "attachments.db",
            "CREATE TABLE Attachments (Id INTEGER PRIMARY KEY, Payload BLOB);",
            [("INSERT INTO Attachments VALUES (?, ?)", [(1, payload), (2, b"")])],
        )
        config = MigrationConfig(
            source_path=source,
            destination_url=destination_url,
            export_dir=str(tmp_path / "export"),
            save_report=False,
        )
        orchestrator = MigrationOrchestrator(config, destination_engine=destination_engine)
        run = orchestrator.run_migration()

        assert run.status == MigrationStatus.COMPLETED
        with destination_engine.connect() as conn:
            stored = conn.execute(text('SELECT Payload FROM "Attachments" ORDER BY Id')).scalars().all()
        assert bytes(stored[0]) == payload
        assert bytes(stored[1]) == b""
        assert orchestrator.succeeded
