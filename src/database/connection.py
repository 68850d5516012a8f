"""
Database connection and pool management
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Optional

import asyncpg

from config.settings import DEFAULT_RETRY_INTERVAL_SECONDS, DEFAULT_RETRY_MAX_ATTEMPTS
from utils.exceptions import DatabaseUnavailableError

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        age INTEGER CHECK (age >= 0),
        city TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS users_email_key ON users (email)",
)

# Driver errors meaning the connection itself is gone, not the query
CONNECTION_LOST_ERRORS = (
    OSError,
    asyncpg.PostgresConnectionError,
    asyncpg.CannotConnectNowError,
)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class DatabaseClient:
    """
    Owns the asyncpg pool and the connection state

    The pool is created in the background by connect_with_retry(); until it
    succeeds the state stays DISCONNECTED/CONNECTING and the availability
    middleware turns API calls away.
    """

    def __init__(
        self,
        dsn: str,
        retry_interval: float = DEFAULT_RETRY_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 60,
    ):
        self.dsn = dsn
        self.retry_interval = retry_interval
        self.max_attempts = max_attempts
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout

        self._pool: Optional[asyncpg.Pool] = None
        self._state = ConnectionState.DISCONNECTED
        self._connect_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def start(self) -> asyncio.Task:
        """Schedule the connect loop on the running event loop"""
        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.create_task(self.connect_with_retry())
        return self._connect_task

    async def _open_pool(self) -> asyncpg.Pool:
        pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
            statement_cache_size=0  # Fix for pgbouncer compatibility
        )
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                for statement in SCHEMA_STATEMENTS:
                    await conn.execute(statement)
        except BaseException:
            await pool.close()
            raise
        return pool

    async def connect_with_retry(self) -> bool:
        """
        Keep trying to open the pool at a fixed interval

        Returns:
            True once connected, False if max_attempts (when > 0) ran out
        """
        attempt = 0
        while True:
            attempt += 1
            self._state = ConnectionState.CONNECTING
            try:
                self._pool = await self._open_pool()
            except Exception as e:
                self._state = ConnectionState.DISCONNECTED
                if self.max_attempts and attempt >= self.max_attempts:
                    logger.critical(
                        f"✗ Database connection error: {e} - giving up after {attempt} attempts"
                    )
                    return False
                logger.error(
                    f"✗ Database connection error: {e}\n↻ Retrying in {self.retry_interval:g}s..."
                )
                await asyncio.sleep(self.retry_interval)
                continue

            self._state = ConnectionState.CONNECTED
            logger.info("✓ Connected to database")
            return True

    async def mark_disconnected(self, reason: Exception) -> None:
        """Drop the current pool and restart the connect loop"""
        if self._state is not ConnectionState.CONNECTED:
            return
        logger.error(f"✗ Lost database connection: {reason}")
        self._state = ConnectionState.DISCONNECTED
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.terminate()
        self.start()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Yield a pooled connection

        Raises:
            DatabaseUnavailableError: not connected, or the connection dropped
        """
        pool = self._pool
        if not self.is_connected or pool is None:
            raise DatabaseUnavailableError("Database pool not initialized")
        try:
            async with pool.acquire() as conn:
                yield conn
        except CONNECTION_LOST_ERRORS as e:
            await self.mark_disconnected(e)
            raise DatabaseUnavailableError(str(e)) from e

    async def close(self) -> None:
        """Stop reconnecting and close the pool"""
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
            try:
                await self._connect_task
            except asyncio.CancelledError:
                pass
        self._connect_task = None

        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        self._state = ConnectionState.DISCONNECTED
        logger.info("Database connections closed")
