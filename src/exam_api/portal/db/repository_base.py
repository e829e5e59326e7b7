"""
Base Repository

Base class providing connection handling shared by all portal repositories.
Write methods accept an optional connection so that several writes can share
one transaction owned by the caller.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator
from typing import Optional

import asyncpg
from loguru import logger

from exam_api.exceptions import PersistenceFailure

# Errors raised by asyncpg/socket layer that mean "the relational store failed"
DATABASE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class BaseRepository:
    """
    Base repository with shared connection handling.

    All concrete repositories inherit from this.
    """

    def __init__(self, pool, table_name: str):
        """
        Initialize base repository.

        Args:
            pool: asyncpg pool (or DomainDBPool) exposing acquire()
            table_name: Database table name (without schema prefix)
        """
        self.pool = pool
        self.table = table_name

    @asynccontextmanager
    async def _connection(self, conn: Optional[asyncpg.Connection] = None) -> AsyncIterator[asyncpg.Connection]:
        """
        Yield the caller's connection or a pooled one.

        Database errors are re-raised as PersistenceFailure.
        """
        try:
            if conn is not None:
                yield conn
            else:
                async with self.pool.acquire() as acquired:
                    yield acquired
        except DATABASE_ERRORS as e:
            logger.error(f"Database operation on {self.table} failed: {e}", table=self.table, exc_info=True)
            raise PersistenceFailure(f"Database operation on {self.table} failed") from e
