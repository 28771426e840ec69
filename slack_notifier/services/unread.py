"""Unread count derivation.

Slack does not expose unread counts to user tokens, so they are derived:
fetch the conversation's ``last_read`` marker, then count qualifying
messages after it. The lookback is capped (``lookback`` messages), so a
conversation with a larger backlog reports the cap, not the true count.
"""

import logging
from collections.abc import Sequence

from slack_notifier.slack.client import SlackClient
from slack_notifier.slack.concurrency import gather_bounded
from slack_notifier.slack.errors import SlackError
from slack_notifier.slack.models import Message
from slack_notifier.slack.session import SlackSession


logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = 100


class UnreadCounter:
    """Computes per-conversation unread counts. Never raises."""

    def __init__(
        self,
        client: SlackClient,
        session: SlackSession,
        lookback: int = DEFAULT_LOOKBACK,
        concurrency: int = 5,
    ):
        self.client = client
        self.session = session
        self.lookback = lookback
        self.concurrency = concurrency

    async def resolve_identity(self) -> str | None:
        """Return our own user id, resolving it on first success.

        Concurrent callers share one auth.test round trip.
        """
        if self.session.identity is None:
            async with self.session.identity_lock:
                if self.session.identity is None:
                    try:
                        self.session.identity = await self.client.authenticate()
                    except SlackError as e:
                        logger.warning(f'Could not resolve own identity, self-sent messages will count: {e.code}')
        return self.session.user_id

    def is_unread(self, message: Message, own_user_id: str | None) -> bool:
        if message.is_system:
            return False
        if own_user_id and message.user_id == own_user_id:
            return False
        return True

    async def unread_count(self, conversation_id: str) -> int:
        """Number of unread messages in ``conversation_id``; 0 on any failure."""
        return await self._count(conversation_id, resolve=True)

    async def _count(self, conversation_id: str, own_user_id: str | None = None, resolve: bool = False) -> int:
        try:
            info = await self.client.get_conversation_info(conversation_id)
        except Exception as e:
            logger.warning(f'conversations.info failed for {conversation_id}: {e}')
            return 0

        last_read = self.session.effective_last_read(conversation_id, info.last_read)
        # Never visited: don't report the whole channel as unread
        if not last_read:
            return 0

        if resolve:
            own_user_id = await self.resolve_identity()
        try:
            messages = await self.client.get_history(
                conversation_id,
                limit=self.lookback,
                oldest=last_read,
                inclusive=False,
            )
        except Exception as e:
            logger.warning(f'conversations.history failed for {conversation_id}: {e}')
            return 0

        return sum(1 for m in messages if self.is_unread(m, own_user_id))

    async def unread_counts(self, conversation_ids: Sequence[str]) -> dict[str, int]:
        """Unread counts for many conversations, fetched through the bounded pool.

        Identity is resolved once up front so workers never race on it.
        """
        own_user_id = await self.resolve_identity() if conversation_ids else None
        counts = await gather_bounded(
            [lambda cid=cid: self._count(cid, own_user_id) for cid in conversation_ids],
            limit=self.concurrency,
            fallback=0,
            label='unread count',
        )
        return dict(zip(conversation_ids, counts))
