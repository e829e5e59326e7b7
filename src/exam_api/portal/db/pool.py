"""
Portal Database Connection Pool

Manages the asyncpg connection pool for the portal database.
Automatically runs migrations on initialization.

Schema Evolution:
-----------------
When adding/removing/renaming tables in schema.sql:
1. Update the schema.sql file with new DDL
2. Update DomainDBPool.EXPECTED_TABLES constant with new table names
"""

from pathlib import Path
from typing import Optional

import asyncpg
from loguru import logger

SCHEMA_NAME = "exam_portal"


class DomainDBPool:
    """Portal database connection pool manager."""

    # Update this set when schema evolves (add/remove/rename tables)
    EXPECTED_TABLES = {
        "departments",
        "profiles",
        "examination_requests",
        "request_responses",
        "email_notifications",
    }

    # Columns added after the first release; schema.sql adds them with ALTER TABLE
    EXPECTED_COLUMNS = {("email_notifications", "claimed_until")}

    def __init__(self, connection_string: str):
        """
        Initialize domain DB pool.

        Args:
            connection_string: PostgreSQL connection string for the portal database
        """
        self.connection_string = connection_string
        self.pool: Optional[asyncpg.Pool] = None
        self._pool_initialized = False

    async def initialize(self) -> None:
        """Initialize connection pool and run migrations."""
        if self._pool_initialized and self.pool is not None:
            logger.debug("Domain DB pool already initialized")
            return

        try:
            logger.info("Initializing portal database pool")

            self.pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=2,
                max_size=10,
                command_timeout=60,  # Query timeout (60 seconds)
                timeout=15,  # Connection timeout (15 seconds)
            )

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                if result != 1:
                    raise RuntimeError("Pool validation query failed")

            logger.info("Domain DB pool validated")

            await self._run_migrations()

            self._pool_initialized = True
            logger.success("Portal database initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize domain DB pool: {e}", exc_info=True)
            if self.pool:
                await self.pool.close()
                self.pool = None
            raise

    async def _run_migrations(self) -> None:
        """
        Run database migrations (execute schema.sql if needed).

        Checks that the exam_portal schema holds every expected table and column. If
        anything is missing the idempotent schema.sql is executed, then the result is verified.
        """
        async with self.pool.acquire() as conn:
            existing_tables = await self._existing_tables(conn)

            missing_columns = self.EXPECTED_COLUMNS - await self._existing_columns(conn)
            if existing_tables >= self.EXPECTED_TABLES and not missing_columns:
                logger.info(f"Portal schema and all {len(self.EXPECTED_TABLES)} expected tables exist")
                return

            missing_tables = self.EXPECTED_TABLES - existing_tables
            logger.info(
                "Running portal migrations",
                missing_tables=sorted(missing_tables),
                missing_columns=sorted(f"{t}.{c}" for t, c in missing_columns),
            )

            schema_path = Path(__file__).parent / "schema.sql"
            if not schema_path.exists():
                raise FileNotFoundError(f"schema.sql not found at {schema_path}")

            await conn.execute(schema_path.read_text(encoding="utf-8"))

            existing_tables = await self._existing_tables(conn)
            missing_tables = self.EXPECTED_TABLES - existing_tables
            if missing_tables:
                logger.error(f"Migration incomplete, missing tables: {missing_tables}")
                raise RuntimeError(f"Migration incomplete: missing tables {missing_tables}")

            logger.success(f"All {len(self.EXPECTED_TABLES)} portal tables verified successfully")

    @staticmethod
    async def _existing_tables(conn: asyncpg.Connection) -> set:
        rows = await conn.fetch(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = $1
            """,
            SCHEMA_NAME,
        )
        return {row["table_name"] for row in rows}

    @staticmethod
    async def _existing_columns(conn: asyncpg.Connection) -> set:
        rows = await conn.fetch(
            """
            SELECT table_name, column_name
            FROM information_schema.columns
            WHERE table_schema = $1
            """,
            SCHEMA_NAME,
        )
        return {(row["table_name"], row["column_name"]) for row in rows}

    async def close(self) -> None:
        """Close the connection pool gracefully."""
        if self.pool:
            logger.info("Closing portal database pool")
            await self.pool.close()
            self.pool = None
            self._pool_initialized = False

    def acquire(self):
        """
        Acquire a database connection from the pool.

        Usage:
            async with pool.acquire() as conn:
                result = await conn.fetchrow("SELECT * FROM ...")
        """
        if not self.pool:
            raise RuntimeError("Domain DB pool not initialized - call initialize() first")
        return self.pool.acquire()

    async def health_check(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            if not self.pool:
                return False

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except Exception as e:
            logger.error(f"Domain DB health check failed: {e}")
            return False
