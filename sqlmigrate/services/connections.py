"""Engine construction for the source file and the destination server."""

import os
import logging
from pathlib import Path
from urllib.parse import quote

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError

from ..exceptions import MigrationError, SourceNotFoundError
from ..models.migration import MigrationConfig

logger = logging.getLogger(__name__)

DESTINATION_URL_ENV = "SQLMIGRATE_DESTINATION_URL"
DESTINATION_PASSWORD_ENV = "SQLMIGRATE_DESTINATION_PASSWORD"


def check_source(source_path: str) -> Path:
    """
    Make sure the source database file exists.

    Raises:
        SourceNotFoundError: If the path is empty or not an existing file
    """
    if not source_path:
        raise SourceNotFoundError("<not set>")
    path = Path(source_path)
    if not path.is_file():
        raise SourceNotFoundError(str(path))
    return path


def create_source_engine(source_path: str) -> Engine:
    """
    Create a read-only engine for a SQLite source file.

    The path is checked before the engine exists, so a missing file never
    leads to a connection attempt (SQLite would otherwise create it).
    """
    path = check_source(source_path)
    # SQLite URIs percent-decode the path, so characters like ? # % must be quoted
    url = URL.create(
        "sqlite",
        database=f"file:{quote(path.resolve().as_posix())}",
        query={"mode": "ro", "uri": "true"},
    )
    logger.debug(f"Opening source database {path} read-only")
    return create_engine(url)


def build_destination_url(config: MigrationConfig) -> URL:
    """
    Build the SQLAlchemy URL for the destination database.

    An explicit ``destination_url`` (from config or the environment) wins.
    Otherwise a SQL Server URL is assembled from the server instance and
    database name, using Windows authentication unless a username is given.
    """
    password = config.destination_password or os.environ.get(DESTINATION_PASSWORD_ENV)
    raw_url = config.destination_url or os.environ.get(DESTINATION_URL_ENV)

    if raw_url:
        try:
            url = make_url(raw_url)
        except ArgumentError as e:
            raise MigrationError(f"Invalid destination URL: {e}") from e
        if password and url.password is None and url.username:
            url = url.set(password=password)
        return url

    if not config.destination_server or not config.destination_database:
        raise MigrationError(
            "Destination not configured: set a destination URL or both server and database"
        )

    query = {"driver": config.destination_driver}
    if config.destination_username:
        return URL.create(
            "mssql+pyodbc",
            username=config.destination_username,
            password=password,
            host=config.destination_server,
            database=config.destination_database,
            query=query,
        )

    query["Trusted_Connection"] = "yes"
    return URL.create(
        "mssql+pyodbc",
        host=config.destination_server,
        database=config.destination_database,
        query=query,
    )


def describe_url(url: URL) -> str:
    """Render a URL for logs and reports without its password."""
    return url.render_as_string(hide_password=True)


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_destination_engine(config: MigrationConfig) -> Engine:
    """Create the destination engine described by the configuration."""
    url = build_destination_url(config)
    kwargs = {}

    if url.get_backend_name() == "mssql" and url.get_driver_name() == "pyodbc":
        kwargs["fast_executemany"] = True

    engine = create_engine(url, **kwargs)

    if url.get_backend_name() == "sqlite":
        _enable_sqlite_foreign_keys(engine)

    logger.info(f"Destination: {describe_url(url)}")
    return engine
