"""Verification service comparing source and destination after a migration."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import and_, column, func, inspect, select, table, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.expression import Executable

from ..models.record import (
    JoinCheckResult,
    VerificationReport,
    VerificationResult,
)

logger = logging.getLogger(__name__)


def _short_error(error: SQLAlchemyError) -> str:
    """The driver message without SQLAlchemy's statement and background link."""
    return str(getattr(error, "orig", None) or error)


class MigrationVerifier:
    """
    Verifier for a completed migration.

    Supports:
    - Row count comparison per table
    - A join query on the destination, compared with the source
    - Reporting tables that cannot be counted as unverified

    Only reads from both databases.
    """

    def __init__(self, source_engine: Engine, destination_engine: Engine):
        """
        Initialize the verifier.

        Args:
            source_engine: Engine bound to the source database
            destination_engine: Engine bound to the destination database
        """
        self.source_engine = source_engine
        self.destination_engine = destination_engine

    def count_rows(self, engine: Engine, table_name: str) -> int:
        """Run SELECT COUNT(*) on a table."""
        with engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(table(table_name))).scalar_one()

    def verify_table(self, table_name: str) -> VerificationResult:
        """
        Compare the row count of one table.

        Count failures on either side are recorded on the result instead of raised.
        """
        result = VerificationResult(table=table_name)
        problems = []

        try:
            result.source_count = self.count_rows(self.source_engine, table_name)
        except SQLAlchemyError as e:
            problems.append(f"source: {_short_error(e)}")

        try:
            result.destination_count = self.count_rows(self.destination_engine, table_name)
        except SQLAlchemyError as e:
            problems.append(f"destination: {_short_error(e)}")

        if problems:
            result.error = "; ".join(problems)
            logger.warning(f"Could not verify {table_name}: {result.error}")
        elif not result.matched:
            logger.warning(
                f"Row count mismatch for {table_name}: "
                f"source={result.source_count} destination={result.destination_count}"
            )
        else:
            logger.debug(f"{table_name}: {result.destination_count} rows on both sides")

        return result

    def verify_counts(self, tables: List[str]) -> List[VerificationResult]:
        """Compare row counts for a caller-supplied list of tables."""
        return [self.verify_table(name) for name in tables]

    def build_join_query(self, tables: List[str]) -> Optional[Executable]:
        """
        Build a COUNT(*) join over the first foreign key found in the destination.

        Args:
            tables: Tables to search, in order

        Returns:
            Select statement, or None when no usable foreign key exists
        """
        inspector = inspect(self.destination_engine)

        for name in tables:
            try:
                foreign_keys = inspector.get_foreign_keys(name)
            except SQLAlchemyError as e:
                logger.debug(f"Cannot read foreign keys of {name}: {e}")
                continue

            for fk in foreign_keys:
                parent = fk["referred_table"]
                if parent == name or not fk["constrained_columns"]:
                    continue

                pairs = list(zip(fk["constrained_columns"], fk["referred_columns"]))
                child = table(name, *[column(c) for c, _ in pairs])
                referred = table(parent, *[column(p) for _, p in pairs])
                condition = and_(*[child.c[c] == referred.c[p] for c, p in pairs])
                return select(func.count()).select_from(child.join(referred, condition))

        return None

    def _run_join(self, engine: Engine, statement: Executable) -> int:
        with engine.connect() as conn:
            return conn.execute(statement).scalar_one()

    def _prepare_join(
        self,
        query: Optional[str],
        tables: List[str]
    ) -> Tuple[Optional[Executable], str]:
        if query:
            inner = query.strip().rstrip(";")
            return text(f"SELECT COUNT(*) FROM ({inner}) AS join_check"), inner

        statement = self.build_join_query(tables)
        if statement is None:
            return None, ""
        rendered = str(statement.compile(dialect=self.destination_engine.dialect))
        return statement, " ".join(rendered.split())

    def check_join(
        self,
        query: Optional[str] = None,
        tables: Optional[List[str]] = None
    ) -> Optional[JoinCheckResult]:
        """
        Run the illustrative join on the destination and, for comparison, the source.

        Args:
            query: SQL query whose returned rows are counted; when omitted a
                join is built from the destination's foreign keys
            tables: Tables to search for a foreign key

        Returns:
            JoinCheckResult, or None when there is nothing to join
        """
        statement, description = self._prepare_join(query, tables or [])
        if statement is None:
            logger.info("No foreign key between verified tables; skipping join check")
            return None

        result = JoinCheckResult(query=description)

        try:
            result.destination_rows = self._run_join(self.destination_engine, statement)
        except SQLAlchemyError as e:
            result.error = str(e)
            logger.warning(f"Join check failed on destination: {e}")
            return result

        try:
            result.source_rows = self._run_join(self.source_engine, statement)
        except SQLAlchemyError as e:
            logger.debug(f"Join query could not run on source: {e}")

        if result.passed:
            logger.info(f"Join check returned {result.destination_rows} rows")
        else:
            logger.warning(
                f"Join check differs: source={result.source_rows} "
                f"destination={result.destination_rows}"
            )
        return result

    def verify(self, tables: List[str], join_query: Optional[str] = None) -> VerificationReport:
        """
        Run count verification and the join check.

        Args:
            tables: Tables to compare
            join_query: Optional custom join query

        Returns:
            VerificationReport with all results
        """
        report = VerificationReport()
        report.results = self.verify_counts(tables)

        verified = [r.table for r in report.results if r.destination_count is not None]
        report.join_check = self.check_join(join_query, verified)
        return report
