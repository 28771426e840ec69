"""Database repository for pinned conversations."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from slack_notifier.db.connection import close_pool, get_connection, get_pool
from slack_notifier.db.models import Pin


SCHEMA = """
CREATE TABLE IF NOT EXISTS pinned_dms (
    conversation_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    display_name TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


class PinRepository:
    """Postgres-backed pin store."""

    async def ensure_schema(self) -> None:
        """Create the pins table if it does not exist."""
        async with get_connection() as conn:
            await conn.execute(SCHEMA)

    async def get_pins(self) -> list[Pin]:
        """Get all pins, oldest first."""
        async with get_connection() as conn:
            rows = await conn.fetch('SELECT * FROM pinned_dms ORDER BY created_at, conversation_id')
            return [
                Pin(
                    user_id=row['user_id'],
                    display_name=row['display_name'],
                    conversation_id=row['conversation_id'],
                    created_at=row['created_at'],
                )
                for row in rows
            ]

    async def add_pin(self, pin: Pin) -> None:
        """Insert or update a pin."""
        async with get_connection() as conn:
            await conn.execute(
                """
                INSERT INTO pinned_dms (conversation_id, user_id, display_name, created_at)
                VALUES ($1, $2, $3, NOW())
                ON CONFLICT (conversation_id) DO UPDATE SET
                    user_id = EXCLUDED.user_id,
                    display_name = EXCLUDED.display_name
                """,
                pin.conversation_id,
                pin.user_id,
                pin.display_name,
            )

    async def remove_pin(self, conversation_id: str) -> bool:
        """Delete a pin. Returns False if it did not exist."""
        async with get_connection() as conn:
            result = await conn.execute('DELETE FROM pinned_dms WHERE conversation_id = $1', conversation_id)
            return result != 'DELETE 0'


@asynccontextmanager
async def open_pin_store() -> AsyncIterator[PinRepository]:
    """Pin store with its table in place, for the lifetime of one command."""
    repository = PinRepository()
    try:
        await get_pool()
        await repository.ensure_schema()
        yield repository
    finally:
        await close_pool()
