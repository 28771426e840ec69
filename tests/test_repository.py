"""Tests for the pin repository against a mocked asyncpg connection."""

from contextlib import asynccontextmanager
from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest

from slack_notifier.db.models import Pin
from slack_notifier.db.repository import PinRepository, open_pin_store


@pytest.fixture
def conn():
    connection = AsyncMock()

    @asynccontextmanager
    async def fake_connection():
        yield connection

    with patch('slack_notifier.db.repository.get_connection', fake_connection):
        yield connection


class TestPinRepository:
    @pytest.mark.asyncio
    async def test_get_pins(self, conn):
        created = datetime(2024, 1, 1)
        conn.fetch.return_value = [
            {'user_id': 'U1', 'display_name': 'Alice', 'conversation_id': 'D1', 'created_at': created}
        ]

        pins = await PinRepository().get_pins()

        assert pins == [Pin('U1', 'Alice', 'D1', created)]
        assert 'ORDER BY created_at' in conn.fetch.await_args.args[0]

    @pytest.mark.asyncio
    async def test_add_pin(self, conn):
        await PinRepository().add_pin(Pin('U1', 'Alice', 'D1'))

        args = conn.execute.await_args.args
        assert 'ON CONFLICT (conversation_id)' in args[0]
        assert args[1:] == ('D1', 'U1', 'Alice')

    @pytest.mark.asyncio
    async def test_remove_pin(self, conn):
        conn.execute.return_value = 'DELETE 1'
        assert await PinRepository().remove_pin('D1') is True

        conn.execute.return_value = 'DELETE 0'
        assert await PinRepository().remove_pin('D1') is False


class TestOpenPinStore:
    @pytest.mark.asyncio
    async def test_creates_table_and_closes_pool(self, conn):
        with patch('slack_notifier.db.repository.get_pool', AsyncMock()) as get_pool, \
                patch('slack_notifier.db.repository.close_pool', AsyncMock()) as close_pool:
            async with open_pin_store() as repository:
                assert isinstance(repository, PinRepository)
                get_pool.assert_awaited_once()
                assert 'CREATE TABLE IF NOT EXISTS pinned_dms' in conn.execute.await_args.args[0]
                close_pool.assert_not_awaited()

        close_pool.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_closes_pool_on_error(self, conn):
        with patch('slack_notifier.db.repository.get_pool', AsyncMock()), \
                patch('slack_notifier.db.repository.close_pool', AsyncMock()) as close_pool:
            with pytest.raises(RuntimeError):
                async with open_pin_store():
                    raise RuntimeError('boom')

        close_pool.assert_awaited_once()
