"""Slack API gateway."""

import asyncio
import logging
from typing import Any

import aiohttp
from slack_sdk.errors import SlackApiError, SlackClientError
from slack_sdk.web.async_client import AsyncWebClient

from slack_notifier.slack.errors import SlackError, TransportError, UnknownError, classify
from slack_notifier.slack.models import Conversation, ConversationInfo, Identity, Message, User


logger = logging.getLogger(__name__)

CHANNEL_TYPES = 'public_channel,private_channel'


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


class SlackClient:
    """Async Slack API client.

    Every call is a single form-encoded POST carrying the bearer token.
    Failures surface as :class:`SlackError` subclasses.
    """

    def __init__(self, token: str, timeout: int = 10):
        self.client = AsyncWebClient(token=token, timeout=timeout)

    async def call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Execute one API method and return the decoded JSON body."""
        data = {k: _encode(v) for k, v in (params or {}).items() if v is not None}
        try:
            response = await self.client.api_call(method, data=data)
        except SlackApiError as e:
            raise self._classify(e) from e
        except (aiohttp.ClientError, asyncio.TimeoutError, SlackClientError) as e:
            raise TransportError(str(e) or type(e).__name__) from e

        if not isinstance(response.data, dict):
            raise UnknownError('invalid_response', f'Slack returned a non-JSON body for {method}.')
        return dict(response.data)

    @staticmethod
    def _classify(e: SlackApiError) -> SlackError:
        body = e.response
        retry_after = None
        headers = getattr(body, 'headers', None) or {}
        if headers.get('Retry-After'):
            try:
                retry_after = int(headers['Retry-After'])
            except ValueError:
                pass
        return classify(body.get('error'), needed=body.get('needed'), retry_after=retry_after)

    async def paginate(self, method: str, params: dict[str, Any], key: str) -> list[dict[str, Any]]:
        """Follow ``response_metadata.next_cursor`` and concatenate ``key`` from every page."""
        items: list[dict[str, Any]] = []
        cursor = None
        seen: set[str] = set()

        while True:
            page_params = dict(params)
            if cursor:
                page_params['cursor'] = cursor
                seen.add(cursor)

            response = await self.call(method, page_params)
            items.extend(response.get(key) or [])

            next_cursor = (response.get('response_metadata') or {}).get('next_cursor') or ''
            if not next_cursor:
                break
            if next_cursor in seen:
                logger.warning(f'{method} returned cursor {next_cursor!r} again, stopping pagination')
                break
            cursor = next_cursor

        logger.debug(f'{method}: fetched {len(items)} {key}')
        return items

    async def authenticate(self) -> Identity:
        """Verify the token and return who it belongs to."""
        identity = Identity.from_slack(await self.call('auth.test'))
        logger.info(f'Authenticated as {identity.user} (ID: {identity.user_id})')
        return identity

    async def list_channels(self) -> list[Conversation]:
        """Fetch public and private channels the user is a member of."""
        raw = await self.paginate(
            'conversations.list',
            {'types': CHANNEL_TYPES, 'exclude_archived': True, 'limit': 200},
            'channels',
        )
        channels = [Conversation.from_slack(ch) for ch in raw]
        return [ch for ch in channels if ch.is_member]

    async def get_conversation_info(self, conversation_id: str) -> ConversationInfo:
        response = await self.call('conversations.info', {'channel': conversation_id})
        return ConversationInfo.from_slack(response)

    async def get_history(
        self,
        conversation_id: str,
        limit: int = 50,
        oldest: str | None = None,
        inclusive: bool | None = None,
    ) -> list[Message]:
        """Fetch one page of history, newest first."""
        response = await self.call(
            'conversations.history',
            {
                'channel': conversation_id,
                'limit': limit,
                'oldest': oldest,
                'inclusive': inclusive,
            },
        )
        return [Message.from_slack(m) for m in response.get('messages') or []]

    async def post_message(self, conversation_id: str, text: str) -> str:
        """Send a message and return its ts."""
        response = await self.call('chat.postMessage', {'channel': conversation_id, 'text': text})
        ts = response.get('ts') or (response.get('message') or {}).get('ts')
        if not ts:
            raise UnknownError('invalid_response', 'Slack accepted the message but returned no timestamp.')
        return ts

    async def mark_read(self, conversation_id: str, ts: str) -> bool:
        """Move the remote read marker. Failures are logged, not raised."""
        try:
            await self.call('conversations.mark', {'channel': conversation_id, 'ts': ts})
            return True
        except SlackError as e:
            logger.error(f'conversations.mark failed for {conversation_id}: {e.code}')
            return False

    async def get_user_name(self, user_id: str) -> str:
        """Resolve a user id to a display name, falling back to the id."""
        try:
            response = await self.call('users.info', {'user': user_id})
            return User.from_slack(response.get('user') or {}).best_name
        except SlackError as e:
            logger.warning(f'Failed to get user {user_id}: {e.code}')
            return user_id

    async def list_users(self) -> list[User]:
        """List active human members of the workspace."""
        raw = await self.paginate('users.list', {'limit': 200}, 'members')
        users = [User.from_slack(u) for u in raw]
        return [u for u in users if not u.deleted and not u.is_bot]

    async def open_dm(self, user_id: str) -> str:
        """Open (or reuse) a DM with ``user_id`` and return its conversation id."""
        response = await self.call('conversations.open', {'users': user_id})
        channel = response.get('channel') or {}
        if not channel.get('id'):
            raise UnknownError('invalid_response', 'Slack opened the conversation but returned no id.')
        return channel['id']

    def get_message_link(self, channel_id: str, message_ts: str, thread_ts: str | None = None) -> str:
        """Generate a Slack message permalink."""
        ts_formatted = message_ts.replace('.', '')
        base_url = f'https://slack.com/archives/{channel_id}/p{ts_formatted}'
        if thread_ts and thread_ts != message_ts:
            thread_formatted = thread_ts.replace('.', '')
            base_url += f'?thread_ts={thread_formatted}'
        return base_url
