"""Storage abstractions and Redis implementation for repositories."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from redis.exceptions import NoScriptError

from .database import DatabaseClient


class KeyValueStore(ABC):
    """Read side of the payment record store plus atomic script execution.

    All writes go through registered scripts so that each state transition is
    a single atomic step on the server.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        pass

    @abstractmethod
    async def zrevrange(self, key: str, start: int, end: int) -> list[str]:
        pass

    @abstractmethod
    async def zrangebyscore(self, key: str, min_score: float, max_score: float) -> list[str]:
        """Members with min_score <= score <= max_score, ascending."""
        pass

    @abstractmethod
    async def zcard(self, key: str) -> int:
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """True when the backing store answers."""
        pass

    @abstractmethod
    async def register_script(self, name: str, script: str) -> str:
        """Load a Lua script and remember it under `name`."""
        pass

    @abstractmethod
    def is_script_registered(self, name: str) -> bool:
        pass

    @abstractmethod
    async def run_script(self, name: str, keys: List[str], args: List[str]) -> Any:
        """Execute a registered script atomically."""
        pass


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed implementation of KeyValueStore."""

    def __init__(self, db_client: DatabaseClient):
        self._db_client = db_client
        self._script_shas: dict[str, str] = {}
        self._script_sources: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        async with self._db_client.get_connection() as conn:
            return await conn.get(key)

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        if not keys:
            return []
        async with self._db_client.get_connection() as conn:
            return await conn.mget(keys)

    async def zrevrange(self, key: str, start: int, end: int) -> list[str]:
        async with self._db_client.get_connection() as conn:
            return await conn.zrevrange(key, start, end)

    async def zrangebyscore(self, key: str, min_score: float, max_score: float) -> list[str]:
        async with self._db_client.get_connection() as conn:
            return await conn.zrangebyscore(key, min_score, max_score)

    async def zcard(self, key: str) -> int:
        async with self._db_client.get_connection() as conn:
            return await conn.zcard(key)

    async def ping(self) -> bool:
        return await self._db_client.ping()

    async def register_script(self, name: str, script: str) -> str:
        async with self._db_client.get_connection() as conn:
            sha = await conn.script_load(script)
        self._script_shas[name] = sha
        self._script_sources[name] = script
        return sha

    def is_script_registered(self, name: str) -> bool:
        return name in self._script_shas

    async def run_script(self, name: str, keys: List[str], args: List[str]) -> Any:
        if name not in self._script_sources:
            raise ValueError(f"Script '{name}' not registered")
        async with self._db_client.get_connection() as conn:
            try:
                return await conn.evalsha(
                    self._script_shas[name], len(keys), *keys, *args
                )
            except NoScriptError:
                # Script cache flushed (e.g. Redis restart); reload and retry once
                sha = await conn.script_load(self._script_sources[name])
                self._script_shas[name] = sha
                return await conn.evalsha(sha, len(keys), *keys, *args)
