"""Tests for user-initiated conversation actions."""

from unittest.mock import AsyncMock

import pytest
from conftest import api_error, message

from slack_notifier.db.models import Pin
from slack_notifier.services.conversations import ConversationService
from slack_notifier.services.unread import UnreadCounter
from slack_notifier.slack.errors import NotFoundError, ScopeError
from slack_notifier.slack.models import ConversationKind
from slack_notifier.slack.session import SlackSession


@pytest.fixture
def session():
    return SlackSession()


@pytest.fixture
def service(slack_client, session):
    return ConversationService(slack_client, session)


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_posts_and_marks_read(self, service, fake_api, session):
        fake_api.handlers['chat.postMessage'] = {'ts': '1700000000.000100'}
        fake_api.handlers['conversations.mark'] = {}

        ts = await service.send_message('C1', '  hello  ')

        assert ts == '1700000000.000100'
        assert fake_api.calls_to('chat.postMessage') == [{'channel': 'C1', 'text': 'hello'}]
        assert fake_api.calls_to('conversations.mark') == [{'channel': 'C1', 'ts': ts}]
        assert session.read_markers['C1'] == ts

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self, service, fake_api):
        with pytest.raises(ValueError):
            await service.send_message('C1', '   ')
        assert fake_api.calls == []

    @pytest.mark.asyncio
    async def test_error_surfaces_explanation(self, service, fake_api):
        fake_api.handlers['chat.postMessage'] = api_error('missing_scope', needed='chat:write')

        with pytest.raises(ScopeError) as exc_info:
            await service.send_message('C1', 'hello')

        assert 'chat:write' in exc_info.value.explanation


class TestHistory:
    @pytest.mark.asyncio
    async def test_oldest_first_with_names(self, service, fake_api):
        fake_api.handlers['conversations.history'] = {
            'messages': [
                message('3.0', user='U1', text='third'),
                {'ts': '2.0', 'text': 'deploy done', 'subtype': 'bot_message', 'username': 'ci'},
                dict(message('1.0', user='U1', text='first'), reactions=[{'name': 'tada', 'count': 2}]),
            ]
        }
        fake_api.handlers['users.info'] = {'user': {'id': 'U1', 'name': 'alice', 'profile': {}}}

        lines = await service.history('C1', limit=3)

        assert [line.text for line in lines] == ['first', 'deploy done', 'third']
        assert [line.author for line in lines] == ['alice', 'ci', 'alice']
        assert lines[0].reactions == ':tada: 2'
        assert len(fake_api.calls_to('users.info')) == 1

    @pytest.mark.asyncio
    async def test_missing_conversation(self, service, fake_api):
        fake_api.handlers['conversations.history'] = api_error('channel_not_found')

        with pytest.raises(NotFoundError):
            await service.history('C404')


class TestPins:
    @pytest.mark.asyncio
    async def test_pin_user_opens_dm_and_stores(self, service, fake_api):
        fake_api.handlers['conversations.open'] = {'channel': {'id': 'D7'}}
        fake_api.handlers['users.info'] = {'user': {'id': 'U7', 'name': 'bob', 'profile': {'real_name': 'Bob B'}}}
        store = AsyncMock()

        pin = await service.pin_user('U7', store)

        assert pin == Pin(user_id='U7', display_name='Bob B', conversation_id='D7')
        store.add_pin.assert_awaited_once_with(pin)

    @pytest.mark.asyncio
    async def test_tracked_conversations_union(self, service, fake_api):
        fake_api.handlers['conversations.list'] = {
            'channels': [{'id': 'C1', 'name': 'general', 'is_member': True}]
        }
        pins = [
            Pin(user_id='U1', display_name='Alice', conversation_id='D1'),
            Pin(user_id='U2', display_name='Dup', conversation_id='C1'),
        ]

        tracked = await service.tracked_conversations(pins)

        assert [(t.id, t.label, t.kind) for t in tracked] == [
            ('C1', '#general', ConversationKind.CHANNEL),
            ('D1', 'Alice', ConversationKind.DIRECT),
        ]


class TestOverview:
    @pytest.mark.asyncio
    async def test_counts_per_conversation(self, service, fake_api, slack_client, session):
        fake_api.handlers['auth.test'] = {'user_id': 'U_ME', 'user': 'me'}
        fake_api.handlers['conversations.list'] = {
            'channels': [{'id': 'C1', 'name': 'general', 'is_member': True}]
        }
        fake_api.handlers['conversations.info'] = lambda data: {
            'channel': {'id': data['channel'], 'last_read': '1.0'}
        }
        fake_api.handlers['conversations.history'] = lambda data: {
            'messages': [message('2.0')] if data['channel'] == 'D1' else []
        }
        counter = UnreadCounter(slack_client, session)

        entries = await service.overview(counter, [Pin('U1', 'Alice', 'D1')])

        assert [(e.conversation.id, e.unread) for e in entries] == [('C1', 0), ('D1', 1)]
