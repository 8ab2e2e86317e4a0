"""Migration orchestrator - coordinates export, import and verification."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy.engine import Engine

from .exceptions import ConstraintCreationError, MigrationError
from .extractors.base import ExtractionResult
from .extractors.csv_extractor import CSVExtractor
from .extractors.sqlite_extractor import SQLiteExtractor
from .loaders.base import LoadResult
from .loaders.sql_loader import SQLLoader
from .models.migration import (
    MigrationConfig,
    MigrationRun,
    MigrationStatus,
)
from .models.record import VerificationReport
from .models.schema import SchemaDocument
from .services.connections import (
    build_destination_url,
    check_source,
    create_destination_engine,
    create_source_engine,
    describe_url,
)
from .services.export_writer import ExportWriter
from .services.verifier import MigrationVerifier

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MigrationOrchestrator:
    """
    Orchestrates the complete migration process.

    Handles:
    - Source existence check before any connection
    - Export of the source to CSV files plus schema.json
    - Dependency-ordered import into the destination
    - Row count and join verification
    - Progress tracking and a JSON run report
    """

    def __init__(
        self,
        config: MigrationConfig,
        source_engine: Optional[Engine] = None,
        destination_engine: Optional[Engine] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Migration configuration
            source_engine: Pre-built source engine (created from config when omitted)
            destination_engine: Pre-built destination engine (created from config when omitted)
        """
        self.config = config
        self._source_engine = source_engine
        self._destination_engine = destination_engine

        self.run = MigrationRun(
            name=config.name,
            source_path=config.source_path,
            export_dir=config.export_dir,
        )
        self.loader: Optional[SQLLoader] = None
        self.document: Optional[SchemaDocument] = None
        self.extraction_results: List[ExtractionResult] = []
        self.load_results: Dict[str, LoadResult] = {}
        self.verification: Optional[VerificationReport] = None
        self._load_failed = False

    @property
    def source_engine(self) -> Engine:
        if self._source_engine is None:
            self._source_engine = create_source_engine(self.config.source_path)
        return self._source_engine

    @property
    def destination_engine(self) -> Engine:
        if self._destination_engine is None:
            self._destination_engine = create_destination_engine(self.config)
        return self._destination_engine

    def _describe_destination(self) -> str:
        if self._destination_engine is not None:
            return describe_url(self._destination_engine.url)
        return describe_url(build_destination_url(self.config))

    def _begin(self) -> None:
        if self.run.started_at is None:
            self.run.started_at = _now()

    def _finish(self) -> MigrationRun:
        self.run.completed_at = _now()
        self.run.update_totals()
        if self.config.save_report:
            self._save_report()
        return self.run

    def run_migration(self) -> MigrationRun:
        """
        Run export, import and verification.

        Returns:
            MigrationRun with results and statistics

        Raises:
            SourceNotFoundError: If the source file does not exist
        """
        check_source(self.config.source_path)
        self._begin()

        try:
            self.run.destination = self._describe_destination()

            # Phase 1: Export
            logger.info("=== PHASE 1: EXPORT ===")
            self._run_export_phase()

            # Phase 2: Import
            logger.info("=== PHASE 2: IMPORT ===")
            self._run_import_phase()

            # Phase 3: Verification
            logger.info("=== PHASE 3: VERIFICATION ===")
            self._run_verify_phase()

            self._settle_status()

        except MigrationError as e:
            self._fail(e)

        return self._finish()

    def run_export(self) -> MigrationRun:
        """Run only the export phase."""
        check_source(self.config.source_path)
        self._begin()
        try:
            logger.info("=== EXPORT ===")
            self._run_export_phase()
            self._settle_status()
        except MigrationError as e:
            self._fail(e)
        return self._finish()

    def run_import(self) -> MigrationRun:
        """Run only the import phase, from an existing export folder."""
        self._begin()
        try:
            self.run.destination = self._describe_destination()
            logger.info("=== IMPORT ===")
            self._run_import_phase()
            self._settle_status()
        except MigrationError as e:
            self._fail(e)
        return self._finish()

    def run_verify(self) -> MigrationRun:
        """Run only the verification phase."""
        check_source(self.config.source_path)
        self._begin()
        try:
            self.run.destination = self._describe_destination()
            logger.info("=== VERIFICATION ===")
            self._run_verify_phase()
            self._settle_status()
        except MigrationError as e:
            self._fail(e)
        return self._finish()

    def _fail(self, error: Exception) -> None:
        logger.error(f"Migration failed during {self.run.status.value}: {error}")
        self.run.errors.append({
            "phase": self.run.status.value,
            "error": str(error),
            "timestamp": _now().isoformat(),
        })
        self.run.status = MigrationStatus.FAILED

    def _settle_status(self) -> None:
        if self._load_failed:
            self.run.status = MigrationStatus.FAILED
        else:
            self.run.status = MigrationStatus.COMPLETED
            logger.info("=== MIGRATION COMPLETED ===")

    def _run_export_phase(self) -> None:
        """Export every requested table; failing tables are skipped."""
        self.run.status = MigrationStatus.EXPORTING
        extractor = SQLiteExtractor(self.source_engine, batch_size=self.config.batch_size)
        writer = ExportWriter(
            self.config.export_dir,
            encoding=self.config.encoding,
            null_marker=self.config.null_marker,
        )

        self.document, self.extraction_results = extractor.export_all(
            writer,
            tables=self.config.tables,
            source=str(Path(self.config.source_path).resolve()),
        )

        for result in self.extraction_results:
            step = self.run.add_step(name=f"Export {result.table}", table=result.table)
            step.started_at = result.started_at
            step.completed_at = result.completed_at
            step.rows_processed = result.rows_extracted
            step.rows_succeeded = result.rows_extracted
            if result.success:
                step.status = MigrationStatus.COMPLETED
            else:
                step.status = MigrationStatus.FAILED
                step.errors = result.errors
                step.warnings.append(f"Table {result.table} skipped")

        exported = len(self.document.tables)
        logger.info(f"Exported {exported} of {len(self.extraction_results)} table(s) to {self.config.export_dir}")

    def _run_import_phase(self) -> None:
        """Recreate and load the exported tables; constraint failures are fatal."""
        self.run.status = MigrationStatus.IMPORTING
        reader = CSVExtractor(
            self.config.export_dir,
            batch_size=self.config.batch_size,
            encoding=self.config.encoding,
            null_marker=self.config.null_marker,
        )
        self.document = reader.document

        self.loader = SQLLoader(
            self.destination_engine,
            batch_size=self.config.batch_size,
            drop_existing=self.config.drop_existing,
        )
        if not self.loader.validate_connection():
            raise MigrationError("Failed to connect to destination database")

        try:
            self.load_results = self.loader.import_all(reader, self.document.tables)
        except ConstraintCreationError as e:
            step = self.run.add_step(name=f"Create {e.table}", table=e.table)
            step.status = MigrationStatus.FAILED
            step.errors.append({"error": str(e), "referenced_table": e.referenced_table})
            raise

        for table_name, result in self.load_results.items():
            step = self.run.add_step(name=f"Load {table_name}", table=table_name)
            step.started_at = result.started_at
            step.completed_at = result.completed_at
            step.rows_processed = result.rows_attempted
            step.rows_succeeded = result.rows_loaded
            step.rows_failed = result.rows_attempted - result.rows_loaded
            step.errors = result.errors
            step.status = MigrationStatus.COMPLETED if result.success else MigrationStatus.FAILED
            if not result.success:
                self._load_failed = True

    def _run_verify_phase(self) -> None:
        """Compare counts and run the join check."""
        self.run.status = MigrationStatus.VERIFYING
        # Skipped tables stay in the list so they are reported as unverified
        if self.extraction_results:
            attempted = [r.table for r in self.extraction_results]
        elif self.document:
            attempted = self.document.table_names
        else:
            attempted = SQLiteExtractor(self.source_engine).list_tables()
        tables = self.config.tables_to_verify(attempted)

        verifier = MigrationVerifier(self.source_engine, self.destination_engine)
        self.verification = verifier.verify(tables, join_query=self.config.join_query)
        self.run.verification = self.verification.to_dict()

        for result in self.verification.results:
            step = self.run.add_step(name=f"Verify {result.table}", table=result.table)
            step.started_at = step.completed_at = self.verification.checked_at
            step.status = MigrationStatus.COMPLETED
            if result.error:
                step.warnings.append(f"could not verify: {result.error}")
            elif not result.matched:
                step.warnings.append(
                    f"row count mismatch: source={result.source_count} "
                    f"destination={result.destination_count}"
                )

    def _save_report(self) -> Optional[Path]:
        """Save the migration report."""
        reports_dir = Path(self.config.export_dir) / "reports"
        try:
            reports_dir.mkdir(parents=True, exist_ok=True)
            filepath = reports_dir / f"migration_report_{_now().strftime('%Y%m%d_%H%M%S')}.json"
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(self.run.to_dict(), f, indent=2, default=str)
        except OSError as e:
            logger.warning(f"Could not save migration report: {e}")
            return None

        logger.info(f"Saved migration report to {filepath}")
        return filepath

    def rollback(self) -> List[str]:
        """Drop the tables created by this run. Never called automatically."""
        if not self.loader:
            logger.error("No loader available for rollback")
            return []

        self.run.status = MigrationStatus.ROLLING_BACK
        logger.info("Starting rollback...")

        dropped = self.loader.rollback()

        self.run.status = MigrationStatus.ROLLED_BACK
        logger.info(f"Rollback completed: {dropped}")
        return dropped

    @property
    def succeeded(self) -> bool:
        """True when the run completed and verification (if run) found no problems."""
        if self.run.status != MigrationStatus.COMPLETED:
            return False
        if self.verification is None:
            return True
        join_ok = self.verification.join_check is None or self.verification.join_check.passed
        return self.verification.all_matched and join_ok
