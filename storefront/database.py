"""
Database connection management for the storefront service.

An asyncpg pool wrapper with a transaction helper, and the DDL the
PostgreSQL repositories run against.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional

import asyncpg
from asyncpg import Pool

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT,
    role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
    first_name TEXT,
    last_name TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS user_federated_ids (
    provider TEXT NOT NULL,
    subject TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    PRIMARY KEY (provider, subject)
);

CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    code TEXT UNIQUE,
    price NUMERIC(12, 2) NOT NULL,
    category TEXT NOT NULL,
    status BOOLEAN NOT NULL DEFAULT TRUE,
    thumbnails JSONB NOT NULL DEFAULT '[]'::jsonb
);

CREATE INDEX IF NOT EXISTS idx_products_category ON products (category);

CREATE TABLE IF NOT EXISTS carts (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    lines JSONB NOT NULL DEFAULT '[]'::jsonb,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


class DatabaseManager:
    """
    Owns the asyncpg pool behind the PostgreSQL repositories.

    The pool is opened lazily on first use. Single statements go through
    ``execute``/``fetch``/``fetchrow``/``fetchval``; work that has to
    commit or roll back as one unit runs inside ``transaction()``.
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ) -> None:
        self.dsn = dsn or settings.DATABASE_URL
        self.min_size = min_size or settings.DATABASE_POOL_MIN_SIZE
        self.max_size = max_size or settings.DATABASE_POOL_SIZE
        self.pool: Optional[Pool] = None

    async def connect(self) -> None:
        if self.pool is not None:
            return

        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=60,
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error("Storage pool unavailable", error=str(e))
            raise
        logger.info("Storage pool open", min_size=self.min_size, max_size=self.max_size)

    async def disconnect(self) -> None:
        if self.pool is None:
            return
        pool, self.pool = self.pool, None
        await pool.close()
        logger.info("Storage pool closed")

    async def create_schema(self) -> None:
        """Apply ``SCHEMA_SQL``; every statement in it is idempotent."""
        await self.execute(SCHEMA_SQL)
        logger.info("Storage schema applied")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow one pooled connection for the duration of the block."""
        if self.pool is None:
            await self.connect()
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Borrow a connection and open a transaction on it.

        Statements issued on the yielded connection commit together when
        the block exits normally and roll back together if it raises.
        """
        async with self.connection() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args) -> str:
        async with self.connection() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args) -> List[asyncpg.Record]:
        async with self.connection() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        async with self.connection() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args) -> Any:
        async with self.connection() as conn:
            return await conn.fetchval(query, *args)
