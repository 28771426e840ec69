"""Postgres pool backing the pinned-DM store.

Pins are read once per poll cycle and written only by the ``pin`` and
``unpin`` commands, so a handful of connections is plenty.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from slack_notifier.config import get_config


logger = logging.getLogger(__name__)

PIN_POOL_MIN_SIZE = 1
PIN_POOL_MAX_SIZE = 4
PIN_QUERY_TIMEOUT = 30

_pool: asyncpg.Pool | None = None


async def get_pool() -> asyncpg.Pool:
    """Pool for the pinned-DM table, created on first use from ``DATABASE_URL``."""
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            get_config().database_url,
            min_size=PIN_POOL_MIN_SIZE,
            max_size=PIN_POOL_MAX_SIZE,
            command_timeout=PIN_QUERY_TIMEOUT,
        )
        logger.debug('Opened pin store pool')
    return _pool


async def close_pool() -> None:
    """Close the pin store pool; the next :func:`get_pool` opens a fresh one."""
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.debug('Closed pin store pool')


@asynccontextmanager
async def get_connection() -> AsyncIterator[asyncpg.Connection]:
    """Connection for one pin query."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn
