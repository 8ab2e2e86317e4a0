"""SQLite source extractor: schema introspection and row streaming."""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy import column, select, table, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .base import BaseExtractor, ExtractionResult
from ..exceptions import IntrospectionError, MigrationError, RowShapeError
from ..models.record import RowBatch
from ..models.schema import (
    ColumnDefinition,
    ForeignKeyReference,
    SchemaDocument,
    TableDescriptor,
)
from ..services.export_writer import ExportWriter

logger = logging.getLogger(__name__)


def _by_lower(table_info) -> Dict[str, str]:
    return {row["name"].lower(): row["name"] for row in table_info}


class SQLiteExtractor(BaseExtractor):
    """
    Extractor for a SQLite database file.

    Supports:
    - Listing user tables in declaration order
    - Column, primary key and foreign key introspection via PRAGMA
    - Streaming rows in primary key order
    - Exporting tables to an export folder, skipping tables that fail
    """

    def __init__(self, engine: Engine, batch_size: int = 1000):
        """
        Initialize the SQLite extractor.

        Args:
            engine: Engine bound to the source SQLite file
            batch_size: Number of rows per streamed batch
        """
        super().__init__(batch_size=batch_size)
        self.engine = engine

    def _quote(self, name: str) -> str:
        return self.engine.dialect.identifier_preparer.quote_identifier(name)

    def _table_names(self, conn) -> List[str]:
        rows = conn.execute(text(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
        )).fetchall()
        return [row[0] for row in rows]

    def list_tables(self) -> List[str]:
        """List user tables, excluding SQLite's internal tables."""
        try:
            with self.engine.connect() as conn:
                return self._table_names(conn)
        except SQLAlchemyError as e:
            raise MigrationError(f"Cannot list tables in source database: {e}") from e

    def describe_table(self, table_name: str) -> TableDescriptor:
        """
        Describe a table from PRAGMA table_info and PRAGMA foreign_key_list.

        Raises:
            IntrospectionError: If the table does not exist or cannot be read
        """
        quoted = self._quote(table_name)

        try:
            with self.engine.connect() as conn:
                column_rows = self._table_info(conn, table_name)
                if not column_rows:
                    raise IntrospectionError(table_name, "table does not exist")

                fk_rows = conn.exec_driver_sql(f"PRAGMA foreign_key_list({quoted})").mappings().all()
                foreign_keys = self._build_foreign_keys(conn, table_name, column_rows, fk_rows)
        except SQLAlchemyError as e:
            raise IntrospectionError(table_name, str(e)) from e

        columns = [
            ColumnDefinition(
                name=row["name"],
                type=row["type"] or "",
                nullable=not row["notnull"] and not row["pk"],
                default=row["dflt_value"],
                primary_key_position=row["pk"],
            )
            for row in column_rows
        ]
        primary_key = [
            c.name for c in sorted(
                (c for c in columns if c.is_primary_key),
                key=lambda c: c.primary_key_position,
            )
        ]

        return TableDescriptor(
            name=table_name,
            columns=columns,
            primary_key=primary_key,
            foreign_keys=foreign_keys,
        )

    def _build_foreign_keys(
        self,
        conn,
        table_name: str,
        column_rows,
        fk_rows
    ) -> List[ForeignKeyReference]:
        """Group foreign_key_list rows into one reference per constraint."""
        grouped: Dict[int, List] = {}
        for row in fk_rows:
            grouped.setdefault(row["id"], []).append(row)

        # SQLite matches identifiers case-insensitively; keep the declared spelling
        tables = {name.lower(): name for name in self._table_names(conn)} if grouped else {}
        own_columns = _by_lower(column_rows)

        foreign_keys = []
        # foreign_key_list numbers constraints from the last declared one
        for fk_id in sorted(grouped, reverse=True):
            parts = sorted(grouped[fk_id], key=lambda r: r["seq"])
            referenced_table = tables.get(parts[0]["table"].lower(), parts[0]["table"])
            columns = [own_columns.get(p["from"].lower(), p["from"]) for p in parts]
            referenced = [p["to"] for p in parts]

            parent_info = self._table_info(conn, referenced_table)
            if any(c is None for c in referenced):
                referenced = [
                    r["name"] for r in sorted((r for r in parent_info if r["pk"]), key=lambda r: r["pk"])
                ]
                if len(referenced) != len(columns):
                    raise IntrospectionError(
                        table_name,
                        f"cannot resolve implicit foreign key reference to {referenced_table}",
                    )
            else:
                parent_columns = _by_lower(parent_info)
                referenced = [parent_columns.get(c.lower(), c) for c in referenced]

            foreign_keys.append(ForeignKeyReference(
                columns=columns,
                referenced_table=referenced_table,
                referenced_columns=referenced,
                on_update=parts[0]["on_update"],
                on_delete=parts[0]["on_delete"],
            ))
        return foreign_keys

    def _table_info(self, conn, table_name: str) -> List:
        return conn.exec_driver_sql(f"PRAGMA table_info({self._quote(table_name)})").mappings().all()

    def iter_rows(self, descriptor: TableDescriptor) -> Iterator[RowBatch]:
        """Stream rows in batches, ordered by primary key when the table has one."""
        source = table(descriptor.name, *[column(name) for name in descriptor.column_names])
        stmt = select(*source.c)
        if descriptor.primary_key:
            stmt = stmt.order_by(*[source.c[name] for name in descriptor.primary_key])

        try:
            with self.engine.connect() as conn:
                result = conn.execute(stmt)
                for number, partition in enumerate(result.partitions(self.batch_size), start=1):
                    yield RowBatch(
                        table=descriptor.name,
                        columns=descriptor.column_names,
                        rows=[tuple(row) for row in partition],
                        batch_number=number,
                    )
        except SQLAlchemyError as e:
            raise IntrospectionError(descriptor.name, str(e)) from e

    def _canonical_names(self, requested: Optional[List[str]]) -> List[str]:
        """Resolve requested names to the source's spelling, keeping request order."""
        available = self.list_tables()
        if not requested:
            return available

        by_lower = {name.lower(): name for name in available}
        return [by_lower.get(name.lower(), name) for name in requested]

    def export_table(self, table_name: str, writer: ExportWriter) -> ExtractionResult:
        """
        Describe a table and write its rows to the export folder.

        Failures are recorded on the result and logged as warnings; they never
        propagate, so the remaining tables can still be exported.
        """
        result = ExtractionResult(table=table_name, started_at=datetime.now(timezone.utc))

        try:
            descriptor = self.describe_table(table_name)
            rows = writer.write_table(descriptor, self.iter_rows(descriptor))

            result.descriptor = descriptor
            result.rows_extracted = rows
            result.data_file = descriptor.data_file
            logger.info(f"Exported {rows} rows from {table_name}")

        except (IntrospectionError, RowShapeError, OSError) as e:
            result.errors.append({
                "message": str(e),
                "table": table_name,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })
            self.add_warning(f"Skipping table {table_name}: {e}")

        finally:
            result.completed_at = datetime.now(timezone.utc)

        return result

    def export_all(
        self,
        writer: ExportWriter,
        tables: Optional[List[str]] = None,
        source: str = ""
    ) -> Tuple[SchemaDocument, List[ExtractionResult]]:
        """
        Export tables and write the schema sidecar.

        Args:
            writer: Writer for the export folder
            tables: Tables to export (all user tables when empty)
            source: Source description recorded in the sidecar

        Returns:
            Tuple of (schema document of exported tables, per-table results)
        """
        self.reset()
        document = SchemaDocument(source=source)
        results = []

        for table_name in self._canonical_names(tables):
            result = self.export_table(table_name, writer)
            results.append(result)
            if result.success:
                document.tables.append(result.descriptor)

        writer.write_schema(document)
        return document, results
