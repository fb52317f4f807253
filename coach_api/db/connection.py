"""
Coach API - Database Connection Pool

Async PostgreSQL connection pool (asyncpg) for the managed user database.
"""

import os
from typing import Optional
from contextlib import asynccontextmanager

import asyncpg


class DatabasePool:
    """
    Async PostgreSQL connection pool.

    Usage:
        pool = DatabasePool()
        await pool.connect()

        async with pool.acquire() as conn:
            row = await conn.fetchrow("SELECT tier FROM users WHERE id = $1", user_id)

        await pool.close()
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        min_size: int = 1,
        max_size: int = 10,
    ):
        """
        Args:
            dsn: PostgreSQL connection string. Falls back to DATABASE_URL.
            min_size: Minimum number of pooled connections.
            max_size: Maximum number of pooled connections.
        """
        self.dsn = dsn or os.getenv("DATABASE_URL", "")
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return
        if not self.dsn:
            raise RuntimeError("DATABASE_URL is not set")

        self._pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=30,
        )

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def acquire(self):
        """Acquire a connection from the pool."""
        if self._pool is None:
            raise RuntimeError("Database pool not connected. Call connect() first.")

        async with self._pool.acquire() as connection:
            yield connection

    async def execute(self, query: str, *args) -> str:
        """Execute a query and return the status string."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        """Execute a query and return one row."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args):
        """Execute a query and return a single value."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    @property
    def is_connected(self) -> bool:
        return self._pool is not None


_db_pool: Optional[DatabasePool] = None


async def init_db(dsn: Optional[str] = None) -> DatabasePool:
    """Create and connect the global pool. Call once at startup."""
    global _db_pool
    _db_pool = DatabasePool(dsn=dsn)
    await _db_pool.connect()
    return _db_pool


async def close_db() -> None:
    """Close the global pool."""
    global _db_pool
    if _db_pool is not None:
        await _db_pool.close()
        _db_pool = None


def get_db() -> DatabasePool:
    """
    Get the global pool.

    Raises:
        RuntimeError: If init_db() has not run.
    """
    if _db_pool is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _db_pool


def get_db_optional() -> Optional[DatabasePool]:
    """Global pool, or None in local/test mode."""
    return _db_pool
