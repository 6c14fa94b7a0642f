"""Redis connection shared by every payment record store in the process."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Protocol

import redis.asyncio as redis


class HasDatabaseSettings(Protocol):
    database_url: str


class DatabaseClient:
    """Lazily connected Redis client backed by one connection pool."""

    def __init__(self, settings: HasDatabaseSettings):
        self.database_url = settings.database_url
        self._redis: Optional[redis.Redis] = None

    def _connect(self) -> redis.Redis:
        if self._redis is None:
            # redis://host:port/db; responses decoded so records stay str
            self._redis = redis.from_url(self.database_url, decode_responses=True)
        return self._redis

    @asynccontextmanager
    async def get_connection(self) -> AsyncGenerator[redis.Redis, None]:
        """Yield the pooled client; connections return to the pool, not closed."""
        yield self._connect()

    async def ping(self) -> bool:
        async with self.get_connection() as conn:
            return bool(await conn.ping())

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


_db_client: Optional[DatabaseClient] = None


def get_database_client(settings: HasDatabaseSettings) -> DatabaseClient:
    """Get or create database client singleton."""
    global _db_client
    if _db_client is None:
        _db_client = DatabaseClient(settings)
    return _db_client
