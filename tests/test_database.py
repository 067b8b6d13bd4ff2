"""
Tests for the asyncpg pool wrapper.

The pool is mocked; these tests check pool sizing and that
``transaction()`` runs its block on one connection inside one
transaction.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from storefront.database import DatabaseManager


class _Recorder:
    """Async context manager that yields ``value`` and records how it exited."""

    def __init__(self, value=None):
        self.value = value
        self.entered = 0
        self.exc_type = None

    async def __aenter__(self):
        self.entered += 1
        return self.value

    async def __aexit__(self, exc_type, exc, tb):
        self.exc_type = exc_type
        return False


@pytest.fixture
def conn():
    conn = MagicMock()
    conn.transaction.return_value = _Recorder()
    conn.fetchval = AsyncMock(return_value=1)
    return conn


@pytest.fixture
def db(conn):
    manager = DatabaseManager("postgresql://test@localhost/test", min_size=1, max_size=3)
    manager.pool = MagicMock()
    manager.pool.acquire.return_value = _Recorder(conn)
    return manager


class TestDatabaseManager:

    @pytest.mark.asyncio
    async def test_connect_uses_configured_pool_size(self):
        manager = DatabaseManager("postgresql://test@localhost/test", min_size=2, max_size=7)

        with patch("storefront.database.asyncpg.create_pool", new=AsyncMock()) as create_pool:
            await manager.connect()
            await manager.connect()

        create_pool.assert_awaited_once()
        assert create_pool.await_args.kwargs["min_size"] == 2
        assert create_pool.await_args.kwargs["max_size"] == 7

    @pytest.mark.asyncio
    async def test_transaction_yields_one_connection(self, db, conn):
        async with db.transaction() as tx:
            assert tx is conn
            await tx.fetchval("SELECT 1")

        assert db.pool.acquire.return_value.entered == 1
        assert conn.transaction.return_value.entered == 1
        assert conn.transaction.return_value.exc_type is None

    @pytest.mark.asyncio
    async def test_transaction_sees_errors_raised_in_block(self, db, conn):
        with pytest.raises(ValueError):
            async with db.transaction():
                raise ValueError("abort")

        assert conn.transaction.return_value.exc_type is ValueError

    @pytest.mark.asyncio
    async def test_single_statement_helpers_borrow_a_connection(self, db, conn):
        assert await db.fetchval("SELECT 1") == 1
        conn.transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_disconnect_closes_pool_once(self, db):
        pool = db.pool
        pool.close = AsyncMock()

        await db.disconnect()
        await db.disconnect()

        pool.close.assert_awaited_once()
        assert db.pool is None
