"""
# Database Package

The `heimdall.database` package owns the MongoDB connection shared by every repository.

- **`manager`**: The `DatabaseManager` singleton handling connection lifecycle, health
  checks, collection access, index provisioning and query logging.

The `db_manager` instance is created at import time without any I/O; the connection is
established by `await db_manager.connect()` during application startup.

## Module Attributes

Attributes:
    db_manager (DatabaseManager): The global singleton instance for database access.
    DatabaseManager (class): The manager class (exported for type hinting).
"""

from heimdall.database.manager import DatabaseManager, db_manager

__all__ = ["DatabaseManager", "db_manager"]
