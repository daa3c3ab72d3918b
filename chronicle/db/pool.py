"""asyncpg connection pool shared by the PostgreSQL event store."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from chronicle.config.models.storage import PostgresConfig
from chronicle.db.errors import ConnectionError
from chronicle.observability.logging import get_logger

logger = get_logger(__name__)

# Lost connections surface as these; both are treated as transient
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    OSError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
)


def resolve_dsn(configured: str | None = None) -> str:
    """Pick the DSN: explicit setting, then CHRONICLE_DATABASE_URL / DATABASE_URL,
    then a URL assembled from the POSTGRES_* variables."""
    if configured:
        return configured
    for var in ("CHRONICLE_DATABASE_URL", "DATABASE_URL"):
        if os.environ.get(var):
            return os.environ[var]

    env = os.environ.get
    return (
        f"postgresql://{env('POSTGRES_USER', 'chronicle')}:{env('POSTGRES_PASSWORD', 'chronicle')}"
        f"@{env('POSTGRES_HOST', 'localhost')}:{env('POSTGRES_PORT', '5432')}"
        f"/{env('POSTGRES_DB', 'chronicle')}"
    )


class PostgresPool:
    """Pool that connects on first use.

    Usage:
        pool = PostgresPool.from_config(settings.storage.postgres)
        async with pool.acquire() as conn:
            await conn.fetch("SELECT ...")
        await pool.close()
    """

    def __init__(
        self,
        dsn: str | None = None,
        min_size: int = 5,
        max_size: int = 20,
        max_inactive_connection_lifetime: float = 300.0,
        command_timeout: float = 60.0,
    ) -> None:
        self._dsn = resolve_dsn(dsn)
        self._pool_kwargs = {
            "min_size": min_size,
            "max_size": max_size,
            "max_inactive_connection_lifetime": max_inactive_connection_lifetime,
            "command_timeout": command_timeout,
        }
        self._pool: asyncpg.Pool | None = None

    @classmethod
    def from_config(cls, config: PostgresConfig) -> "PostgresPool":
        return cls(
            dsn=config.connection_url,
            min_size=config.min_pool_size,
            max_size=config.max_pool_size,
            max_inactive_connection_lifetime=config.max_inactive_connection_lifetime,
            command_timeout=config.command_timeout,
        )

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Open the pool; no-op when already open.

        Raises:
            ConnectionError: If the database cannot be reached
        """
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(dsn=self._dsn, **self._pool_kwargs)
        except (OSError, asyncpg.PostgresError) as e:
            logger.error("postgres_pool_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}", cause=e) from e
        logger.info("postgres_pool_connected", **self._pool_kwargs)

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("postgres_pool_closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a connection; lost connections raise chronicle ConnectionError."""
        await self.connect()
        try:
            async with self._pool.acquire() as connection:
                yield connection
        except TRANSIENT_ERRORS as e:
            logger.error("postgres_connection_lost", error=str(e))
            raise ConnectionError(f"PostgreSQL connection lost: {e}", cause=e) from e
