"""
SQLite Migration Toolkit

A one-shot toolkit for moving a SQLite database into a server-based
relational database (SQL Server by default) through a file export.

Supports:
- Schema introspection with primary and foreign key metadata
- Export to one CSV file per table plus a JSON schema sidecar
- Dependency-ordered table recreation and bulk loading
- Row count and join verification between source and destination
- Relocating loose working files into a project folder structure
"""

__version__ = "0.1.0"
