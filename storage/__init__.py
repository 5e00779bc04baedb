"""
Storage Package.

This package manages all data persistence.

Modules:
- database: Engine, sessions, table creation
- models/: ORM models
- repositories/: Data access layer
"""

from storage.database import Database, DatabaseConfig


__all__ = [
    "Database",
    "DatabaseConfig",
]
