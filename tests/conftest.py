"""Shared fixtures: a sample SQLite source and SQLite destinations."""

import sqlite3
from contextlib import closing

import pytest

from sqlmigrate.models.migration import MigrationConfig
from sqlmigrate.services.connections import create_destination_engine, create_source_engine

# OrderItems is declared before the tables it depends on on purpose
SOURCE_DDL = """
CREATE TABLE OrderItems (
    OrderId INTEGER NOT NULL,
    LineNumber INTEGER NOT NULL,
    Sku CHAR(12),
    Quantity INTEGER,
    PRIMARY KEY (OrderId, LineNumber),
    FOREIGN KEY (OrderId) REFERENCES Orders(OrderId) ON DELETE CASCADE
);
CREATE TABLE Customers (
    CustomerId INTEGER PRIMARY KEY,
    Name VARCHAR(80) NOT NULL,
    Email TEXT,
    IsActive BOOLEAN
);
CREATE TABLE Orders (
    OrderId INTEGER PRIMARY KEY,
    CustomerId INTEGER NOT NULL REFERENCES Customers(CustomerId),
    OrderDate DATE,
    Total REAL
);
CREATE TABLE Reviews (
    ReviewId INTEGER PRIMARY KEY,
    CustomerId INTEGER REFERENCES Customers,
    Body TEXT
);
"""

CUSTOMERS = [
    (1, "Ada Lovelace", "ada@example.com", 1),
    (2, 'Grace "Amazing" Hopper, RADM', None, 1),
    (3, "Alan Turing", "alan@example.com", 0),
]

ORDERS = [
    (1, 1, "2024-01-05", 19.99),
    (2, 1, "2024-02-11", 5.0),
    (3, 2, "2024-02-12", 120.5),
    (4, 3, "2024-03-01", 7.25),
    (5, 3, None, 0.0),
]

ORDER_ITEMS = [
    (1, 1, "SKU-0001", 2),
    (1, 2, "SKU-0002", 1),
    (3, 1, "SKU-0003", 4),
    (4, 1, "SKU-0001", 1),
]

REVIEWS = [
    (1, 1, "Great service"),
    (2, 3, "Would order again"),
]


@pytest.fixture
def source_path(tmp_path) -> str:
    """Create the sample source database file."""
    path = tmp_path / "source.db"
    with closing(sqlite3.connect(str(path))) as conn:
        conn.executescript(SOURCE_DDL)
        conn.executemany("INSERT INTO Customers VALUES (?, ?, ?, ?)", CUSTOMERS)
        conn.executemany("INSERT INTO Orders VALUES (?, ?, ?, ?)", ORDERS)
        conn.executemany("INSERT INTO OrderItems VALUES (?, ?, ?, ?)", ORDER_ITEMS)
        conn.executemany("INSERT INTO Reviews VALUES (?, ?, ?)", REVIEWS)
        conn.commit()
    return str(path)


@pytest.fixture
def source_engine(source_path):
    """Read-only engine on the sample source."""
    engine = create_source_engine(source_path)
    yield engine
    engine.dispose()


@pytest.fixture
def destination_url(tmp_path) -> str:
    return f"sqlite:///{(tmp_path / 'destination.db').as_posix()}"


@pytest.fixture
def destination_engine(destination_url):
    """SQLite destination with foreign keys enforced."""
    engine = create_destination_engine(MigrationConfig(destination_url=destination_url))
    yield engine
    engine.dispose()


@pytest.fixture
def export_dir(tmp_path) -> str:
    return str(tmp_path / "export")


@pytest.fixture
def migration_config(source_path, destination_url, export_dir) -> MigrationConfig:
    return MigrationConfig(
        name="test-migration",
        source_path=source_path,
        destination_url=destination_url,
        export_dir=export_dir,
        batch_size=2,
    )
