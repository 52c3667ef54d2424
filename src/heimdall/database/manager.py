"""
# Database Management Module

This module provides the **MongoDB infrastructure** for Heimdall. The `DatabaseManager`
owns the Motor client and its connection pool, hands out collection handles to the
repositories and provisions their indexes.

## Architecture Overview

```
┌──────────────┐      ┌──────────────────┐      ┌─────────────────┐
│ Repositories │─────▶│ DatabaseManager  │─────▶│ Motor client    │
│ (per entity) │      │   (singleton)    │      │ (shared pool)   │
└──────────────┘      └──────────────────┘      └─────────────────┘
```

## Key Features

### 1. Connection Lifecycle
- **Async initialization** with exponential backoff (1s, 2s, ...) on
  `ServerSelectionTimeoutError` / `ConnectionFailure`.
- **Timezone-aware client** (`tz_aware=True`): every datetime read back is UTC-aware.
- **Graceful shutdown** through `disconnect()`.

### 2. Index Provisioning
`create_indexes()` asks every repository to create the indexes declared in its module.

### 3. Observability
- `log_query_start/success/error` time every repository operation.
- Queries are sanitized before logging; password hashes and tokens are redacted.

## Usage Example

```python
from heimdall.database import db_manager

await db_manager.connect()
await db_manager.create_indexes()
users = db_manager.get_collection("users")
...
await db_manager.disconnect()
```

## Module Attributes

Attributes:
    db_logger (Logger): Database operations (`[DATABASE]`).
    perf_logger (Logger): Timings (`[DB_PERFORMANCE]`).
    health_logger (Logger): Health checks (`[DB_HEALTH]`).
    db_manager (DatabaseManager): Global singleton used throughout the package.
"""

import asyncio
import time
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from heimdall.config import settings
from heimdall.managers.logging_manager import get_logger

db_logger = get_logger(prefix="[DATABASE]")
perf_logger = get_logger(prefix="[DB_PERFORMANCE]")
health_logger = get_logger(prefix="[DB_HEALTH]")

SENSITIVE_FIELDS = {
    "password",
    "passwordhash",
    "password_hash",
    "token",
    "secret",
    "sessionid",
    "session_id",
}


class DatabaseManager:
    """
    Manages the MongoDB client, collections and indexes.

    Attributes:
        client (Optional[AsyncIOMotorClient]): `None` until `connect()` succeeds.
        database (Optional[AsyncIOMotorDatabase]): The configured database.
    """

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_retries = 3

    def _connection_string(self) -> str:
        if settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD:
            password = settings.MONGODB_PASSWORD.get_secret_value()
            db_logger.debug("Using authenticated connection to MongoDB")
            return f"mongodb://{settings.MONGODB_USERNAME}:{password}@{settings.MONGODB_URL.replace('mongodb://', '')}"
        db_logger.debug("Using unauthenticated connection to MongoDB")
        return settings.MONGODB_URL

    async def connect(self):
        """
        Establish the MongoDB connection, retrying with exponential backoff.

        Raises:
            ServerSelectionTimeoutError: MongoDB is unreachable after every attempt.
            ConnectionFailure: authentication failed or the connection was refused.
        """
        start_time = time.time()
        db_logger.info("Starting MongoDB connection process")

        for attempt in range(self._connection_retries):
            attempt_start = time.time()
            try:
                db_logger.info("Connection attempt %d/%d to MongoDB", attempt + 1, self._connection_retries)
                db_logger.info(
                    "MongoDB connection config - URL: %s, Database: %s, MaxPool: %d, MinPool: %d, ServerTimeout: %dms, ConnTimeout: %dms",
                    settings.MONGODB_URL,
                    settings.MONGODB_DATABASE,
                    settings.MONGODB_MAX_POOL_SIZE,
                    settings.MONGODB_MIN_POOL_SIZE,
                    settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    settings.MONGODB_CONNECTION_TIMEOUT,
                )

                self.client = AsyncIOMotorClient(
                    self._connection_string(),
                    serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    connectTimeoutMS=settings.MONGODB_CONNECTION_TIMEOUT,
                    maxPoolSize=settings.MONGODB_MAX_POOL_SIZE,
                    minPoolSize=settings.MONGODB_MIN_POOL_SIZE,
                    tz_aware=True,
                )
                self.database = self.client[settings.MONGODB_DATABASE]

                ping_start = time.time()
                await self.client.admin.command("ping")
                ping_duration = time.time() - ping_start

                total_duration = time.time() - start_time
                perf_logger.info(
                    "MongoDB connection established successfully in %.3fs (ping: %.3fs)", total_duration, ping_duration
                )
                db_logger.info("Successfully connected to MongoDB database: %s", settings.MONGODB_DATABASE)
                return

            except (ServerSelectionTimeoutError, ConnectionFailure) as e:
                attempt_duration = time.time() - attempt_start
                perf_logger.warning("Connection attempt %d failed after %.3fs", attempt + 1, attempt_duration)
                db_logger.warning(
                    "Failed to connect to MongoDB (attempt %d/%d): %s", attempt + 1, self._connection_retries, e
                )
                if attempt == self._connection_retries - 1:
                    db_logger.error("All connection attempts failed after %.3fs", time.time() - start_time)
                    raise

                backoff_time = 2**attempt
                db_logger.info("Waiting %.1fs before retry (exponential backoff)", backoff_time)
                await asyncio.sleep(backoff_time)

    async def disconnect(self):
        """Close the client and release every pooled connection. Safe to call when not connected."""
        start_time = time.time()
        db_logger.info("Starting MongoDB disconnection process")

        if self.client is None:
            db_logger.warning("Disconnect called but no active MongoDB connection found")
            return

        self.client.close()
        self.client = None
        self.database = None
        perf_logger.info("MongoDB disconnection completed in %.3fs", time.time() - start_time)
        db_logger.info("Successfully disconnected from MongoDB")

    async def health_check(self) -> bool:
        """Ping the server. Returns `False` instead of raising when MongoDB is unavailable."""
        start_time = time.time()
        health_logger.debug("Starting database health check")

        if self.client is None:
            health_logger.warning("Health check failed: No database client available")
            return False

        try:
            await self.client.admin.command("ping")
        except PyMongoError as e:
            perf_logger.warning("Database health check failed after %.3fs", time.time() - start_time)
            health_logger.error("Database health check failed: %s", e)
            return False

        perf_logger.debug("Database health check completed successfully in %.3fs", time.time() - start_time)
        return True

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """
        Return a collection of the connected database.

        Raises:
            ConnectionError: `connect()` has not been called.
        """
        if self.database is None:
            db_logger.error("Attempted to get collection '%s' without database connection", collection_name)
            raise ConnectionError("Database not connected. Call connect() first.")

        db_logger.debug("Retrieving collection: %s", collection_name)
        return self.database[collection_name]

    async def create_indexes(self):
        """Create the indexes declared by every repository."""
        # Imported here, repositories import this module through heimdall.database
        from heimdall.repositories import (
            get_login_log_repository,
            get_page_repository,
            get_post_repository,
            get_user_repository,
        )

        start_time = time.time()
        db_logger.info("Starting database index creation process")

        try:
            for factory in (get_user_repository, get_post_repository, get_page_repository, get_login_log_repository):
                await factory().create_indexes()
        except Exception as e:
            perf_logger.error("Database index creation failed after %.3fs", time.time() - start_time)
            db_logger.error("Failed to create database indexes: %s", e)
            raise

        perf_logger.info("Database index creation completed successfully in %.3fs", time.time() - start_time)
        db_logger.info("Database indexes created successfully")

    # Database operation logging utilities
    def log_query_start(
        self, collection_name: str, operation: str, query: Optional[Any] = None, options: Optional[Any] = None
    ) -> float:
        """Log the start of a database query and return start time for performance tracking"""
        start_time = time.time()

        safe_query = self._sanitize_query_for_logging(query) if query else {}
        safe_options = self._sanitize_query_for_logging(options) if options else {}

        db_logger.debug(
            "Starting %s operation on collection '%s' - Query: %s, Options: %s",
            operation,
            collection_name,
            safe_query,
            safe_options,
        )
        return start_time

    def log_query_success(
        self,
        collection_name: str,
        operation: str,
        start_time: float,
        result_count: Optional[int] = None,
        result_info: Optional[str] = None,
    ):
        """Log successful completion of a database query with performance metrics"""
        duration = time.time() - start_time

        if result_count is not None:
            perf_logger.debug(
                "%s on '%s' completed successfully in %.3fs - %d records",
                operation,
                collection_name,
                duration,
                result_count,
            )
        else:
            perf_logger.debug("%s on '%s' completed successfully in %.3fs", operation, collection_name, duration)

        if result_info:
            db_logger.debug("Additional result info for %s on '%s': %s", operation, collection_name, result_info)

    def log_query_error(
        self, collection_name: str, operation: str, start_time: float, error: Exception, query: Optional[Any] = None
    ):
        """Log database query errors with context and performance metrics"""
        duration = time.time() - start_time
        safe_query = self._sanitize_query_for_logging(query) if query else {}

        perf_logger.error("%s on '%s' failed after %.3fs", operation, collection_name, duration)
        db_logger.error(
            "%s operation failed on collection '%s' after %.3fs - Error: %s, Query: %s",
            operation,
            collection_name,
            duration,
            error,
            safe_query,
        )

    def _sanitize_query_for_logging(self, query: Any) -> Any:
        """Redact sensitive values (password hashes, tokens, session ids) from a query or update."""
        if isinstance(query, list):
            return [self._sanitize_query_for_logging(item) for item in query]
        if not isinstance(query, dict):
            return query

        sanitized: Dict[str, Any] = {}
        for key, value in query.items():
            if any(field in str(key).lower() for field in SENSITIVE_FIELDS):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = self._sanitize_query_for_logging(value)
        return sanitized


# Global database manager instance
db_manager = DatabaseManager()
