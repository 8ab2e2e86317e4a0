"""SQLAlchemy loader for server-based destination databases."""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from sqlalchemy import (
    Column,
    ForeignKeyConstraint,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    inspect,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .base import BaseLoader, LoadResult
from ..exceptions import ConstraintCreationError, MigrationError
from ..models.record import RowBatch
from ..models.schema import TableDescriptor
from ..services.type_mapping import normalize_fk_action, resolve_type

logger = logging.getLogger(__name__)


class SQLLoader(BaseLoader):
    """
    Loader that recreates tables through SQLAlchemy DDL.

    Handles:
    - Column types mapped from declared SQLite types
    - Primary keys in key order, without identity columns
    - Foreign keys in declared order, checked against existing tables
    - One transaction per loaded table
    """

    def __init__(
        self,
        engine: Engine,
        batch_size: int = 1000,
        drop_existing: bool = False
    ):
        """
        Initialize the SQL loader.

        Args:
            engine: Engine bound to the destination database
            batch_size: Number of rows per insert batch
            drop_existing: Drop destination tables that already exist
        """
        super().__init__(batch_size=batch_size, drop_existing=drop_existing)
        self.engine = engine

    def table_exists(self, table: str) -> bool:
        try:
            return inspect(self.engine).has_table(table)
        except SQLAlchemyError as e:
            raise MigrationError(f"Cannot inspect destination table {table}: {e}") from e

    def build_table(
        self,
        descriptor: TableDescriptor,
        metadata: MetaData,
        referenced: Optional[Dict[str, Table]] = None
    ) -> Table:
        """
        Build the SQLAlchemy Table for a descriptor.

        Args:
            descriptor: Table to build
            metadata: MetaData the table is attached to
            referenced: Reflected referenced tables; foreign keys are only
                added when this is given

        Returns:
            Table object (not yet created)
        """
        key_columns = set(descriptor.primary_key)
        columns = [
            Column(
                c.name,
                resolve_type(c.type),
                nullable=c.nullable and c.name not in key_columns,
                autoincrement=False,
            )
            for c in descriptor.columns
        ]

        table = Table(descriptor.name, metadata, *columns)
        if descriptor.primary_key:
            table.append_constraint(PrimaryKeyConstraint(*descriptor.primary_key))

        if referenced is None:
            return table

        for fk in descriptor.foreign_keys:
            is_self = fk.referenced_table.lower() == descriptor.name.lower()
            target = table if is_self else referenced[fk.referenced_table]
            try:
                refcolumns = [target.c[name] for name in fk.referenced_columns]
            except KeyError as e:
                raise ConstraintCreationError(
                    descriptor.name,
                    f"foreign key ({', '.join(fk.columns)}) references missing column "
                    f"{fk.referenced_table}.{e.args[0]}",
                    columns=fk.columns,
                    referenced_table=fk.referenced_table,
                ) from e

            table.append_constraint(ForeignKeyConstraint(
                fk.columns,
                refcolumns,
                onupdate=normalize_fk_action(fk.on_update),
                ondelete=normalize_fk_action(fk.on_delete),
            ))

        return table

    def create_table(self, descriptor: TableDescriptor) -> None:
        """
        Create a table after checking that every referenced table exists.

        Raises:
            ConstraintCreationError: If the table exists (without drop_existing),
                a referenced table or column is missing, or the DDL fails
        """
        try:
            with self.engine.begin() as conn:
                inspector = inspect(conn)
                if inspector.has_table(descriptor.name):
                    raise ConstraintCreationError(
                        descriptor.name,
                        "table already exists in the destination (use drop_existing to replace it)",
                    )

                metadata = MetaData()
                referenced: Dict[str, Table] = {}
                for fk in descriptor.foreign_keys:
                    name = fk.referenced_table
                    if name.lower() == descriptor.name.lower() or name in referenced:
                        continue
                    if not inspector.has_table(name):
                        raise ConstraintCreationError(
                            descriptor.name,
                            f"foreign key ({', '.join(fk.columns)}) references table {name}, "
                            f"which does not exist in the destination",
                            columns=fk.columns,
                            referenced_table=name,
                        )
                    referenced[name] = Table(name, metadata, autoload_with=conn)

                table = self.build_table(descriptor, metadata, referenced)
                table.create(conn)

        except SQLAlchemyError as e:
            raise ConstraintCreationError(descriptor.name, str(e)) from e

        logger.info(
            f"Created table {descriptor.name} "
            f"(primary key: {descriptor.primary_key or 'none'}, "
            f"foreign keys: {len(descriptor.foreign_keys)})"
        )

    def drop_table(self, table: str) -> None:
        try:
            with self.engine.begin() as conn:
                Table(table, MetaData()).drop(conn)
        except SQLAlchemyError as e:
            raise MigrationError(f"Failed to drop table {table}: {e}") from e

    def load_table(self, descriptor: TableDescriptor, batches: Iterable[RowBatch]) -> LoadResult:
        """
        Insert all batches of a table in a single transaction.

        Errors are recorded on the result. The table's transaction is rolled
        back, but tables loaded earlier stay loaded.
        """
        result = LoadResult(table=descriptor.name, started_at=datetime.now(timezone.utc))
        target = self.build_table(descriptor, MetaData())
        insert = target.insert()

        try:
            with self.engine.begin() as conn:
                for batch in batches:
                    rows = batch.as_dicts()
                    result.rows_attempted += len(rows)
                    for i in range(0, len(rows), self.batch_size):
                        conn.execute(insert, rows[i:i + self.batch_size])
                    result.batches += 1
                    result.rows_loaded += len(rows)

        except (SQLAlchemyError, MigrationError) as e:
            result.rows_loaded = 0
            result.errors.append({
                "error": str(e),
                "batch": result.batches + 1,
            })
            logger.error(f"Failed to load {descriptor.name}: {e}")

        finally:
            result.completed_at = datetime.now(timezone.utc)

        if result.success:
            logger.info(f"Loaded {result.rows_loaded} rows into {descriptor.name}")
        return result

    def validate_connection(self) -> bool:
        """Run a trivial query against the destination."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Cannot connect to destination: {e}")
            return False
