from collections.abc import Sequence
import logging
from typing import Any

import asyncpg

logger = logging.getLogger(__name__)


class DatabaseService:
    """asyncpg pool owned by the app lifespan; every query borrows one connection."""

    def __init__(
        self,
        dsn: str,
        reshape_schema_query: str | None = None,
        min_pool_size: int = 1,
        max_pool_size: int = 5,
    ) -> None:
        self._dsn = dsn
        self._schema_query = (reshape_schema_query or "").strip()
        self._pool_bounds = (min_pool_size, max_pool_size)
        self._pool: asyncpg.Pool | None = None

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        if self._pool is not None:
            return
        min_size, max_size = self._pool_bounds
        logger.info("opening conversation store pool", extra={"min_size": min_size, "max_size": max_size})
        self._pool = await asyncpg.create_pool(
            dsn=self._dsn,
            min_size=min_size,
            max_size=max_size,
            init=self._on_new_connection if self._schema_query else None,
        )

    async def disconnect(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            logger.info("closing conversation store pool")
            await pool.close()

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        return await self._run("fetchrow", query, args)

    async def fetch(self, query: str, *args: Any) -> Sequence[asyncpg.Record]:
        return await self._run("fetch", query, args)

    async def execute(self, query: str, *args: Any) -> str:
        return await self._run("execute", query, args)

    async def _on_new_connection(self, connection: asyncpg.Connection) -> None:
        # Points fresh connections at the current schema version before use.
        await connection.execute(self._schema_query)

    async def _run(self, method: str, query: str, args: tuple[Any, ...]) -> Any:
        if self._pool is None:
            raise RuntimeError("database service is not connected")
        logger.debug("running %s", method, extra={"args_count": len(args)})
        async with self._pool.acquire() as connection:
            return await getattr(connection, method)(query, *args)
