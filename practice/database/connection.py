"""
Пул соединений PostgreSQL и транзакции
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

from practice.config import config
from practice.errors import TransientStoreError

logger = logging.getLogger(__name__)

# Ошибки, после которых запрос можно повторить целиком
TRANSIENT_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.SerializationError,
    asyncpg.exceptions.DeadlockDetectedError,
    asyncpg.exceptions.QueryCanceledError,
    asyncpg.exceptions.TooManyConnectionsError,
    asyncpg.exceptions.CannotConnectNowError,
)


# Глобальный пул соединений
_pool: Optional[asyncpg.Pool] = None


async def init_connection(conn: asyncpg.Connection):
    """JSONB <-> dict/list без ручного json.dumps в запросах"""
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog"
    )


async def get_pool() -> asyncpg.Pool:
    """Получить пул соединений (создаёт при первом вызове)"""
    global _pool

    if _pool is None:
        _pool = await asyncpg.create_pool(
            config.DATABASE_URL,
            min_size=config.DB_POOL_MIN_SIZE,
            max_size=config.DB_POOL_MAX_SIZE,
            command_timeout=config.DB_COMMAND_TIMEOUT,
            init=init_connection
        )
        logger.info("Пул соединений создан")

    return _pool


async def close_pool():
    """Закрыть пул соединений"""
    global _pool

    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Пул соединений закрыт")


@asynccontextmanager
async def store_errors() -> AsyncIterator[None]:
    """Перевести сбои драйвера в TransientStoreError"""
    try:
        yield
    except TRANSIENT_ERRORS as e:
        logger.error(f"Хранилище недоступно: {type(e).__name__}: {e}")
        raise TransientStoreError(str(e)) from e


@asynccontextmanager
async def transaction() -> AsyncIterator[asyncpg.Connection]:
    """
    Одна транзакция READ COMMITTED на одном соединении.
    Любое исключение внутри блока откатывает все изменения.
    """
    async with store_errors():
        pool = await get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction(isolation="read_committed"):
                yield conn
