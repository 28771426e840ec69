"""User-initiated conversation actions.

Unlike background polling, these surface :class:`SlackError` to the
caller so the CLI can show the explanation.
"""

import logging
from dataclasses import dataclass

from slack_notifier.db.models import Pin
from slack_notifier.db.repository import PinRepository
from slack_notifier.services.snapshot import TrackedConversation
from slack_notifier.services.unread import UnreadCounter
from slack_notifier.slack.client import SlackClient
from slack_notifier.slack.models import ConversationKind, Message, User, ts_key
from slack_notifier.slack.session import SlackSession


logger = logging.getLogger(__name__)


@dataclass
class HistoryLine:
    """A message ready for display."""

    ts: str
    author: str
    text: str
    link: str
    reactions: str = ''


@dataclass
class UnreadEntry:
    conversation: TrackedConversation
    unread: int


class ConversationService:
    """Actions a user triggers directly: reading, sending, pinning."""

    def __init__(self, client: SlackClient, session: SlackSession):
        self.client = client
        self.session = session

    async def _author(self, message: Message) -> str:
        if message.user_id:
            if message.user_id not in self.session.user_names:
                self.session.user_names[message.user_id] = await self.client.get_user_name(message.user_id)
            return self.session.user_names[message.user_id]
        return message.username or message.bot_id or 'unknown'

    async def history(self, conversation_id: str, limit: int = 50) -> list[HistoryLine]:
        """Recent messages, oldest first, with author names resolved."""
        messages = await self.client.get_history(conversation_id, limit=limit)
        messages.sort(key=lambda m: ts_key(m.ts))

        lines = []
        for msg in messages:
            lines.append(
                HistoryLine(
                    ts=msg.ts,
                    author=await self._author(msg),
                    text=msg.text,
                    link=self.client.get_message_link(conversation_id, msg.ts, msg.thread_ts),
                    reactions=' '.join(f':{r.name}: {r.count}' for r in msg.reactions),
                )
            )
        return lines

    async def send_message(self, conversation_id: str, text: str) -> str:
        """Post ``text`` and mark the conversation read up to it."""
        text = text.strip()
        if not text:
            raise ValueError('Message text is empty')

        ts = await self.client.post_message(conversation_id, text)
        self.session.note_read(conversation_id, ts)
        await self.client.mark_read(conversation_id, ts)
        logger.info(f'Sent message {ts} to {conversation_id}')
        return ts

    async def list_users(self) -> list[User]:
        users = await self.client.list_users()
        return sorted(users, key=lambda u: u.best_name.lower())

    async def pin_user(self, user_id: str, pin_store: PinRepository) -> Pin:
        """Open a DM with ``user_id`` and add it to the pin store."""
        conversation_id = await self.client.open_dm(user_id)
        display_name = await self.client.get_user_name(user_id)
        pin = Pin(user_id=user_id, display_name=display_name, conversation_id=conversation_id)
        await pin_store.add_pin(pin)
        return pin

    async def tracked_conversations(self, pins: list[Pin]) -> list[TrackedConversation]:
        """Member channels followed by pinned DMs, without duplicates."""
        tracked: dict[str, TrackedConversation] = {}
        for channel in await self.client.list_channels():
            tracked[channel.id] = TrackedConversation(channel.id, channel.label, channel.kind)
        for pin in pins:
            tracked.setdefault(
                pin.conversation_id,
                TrackedConversation(pin.conversation_id, pin.display_name, ConversationKind.DIRECT),
            )
        return list(tracked.values())

    async def overview(self, counter: UnreadCounter, pins: list[Pin]) -> list[UnreadEntry]:
        """Unread counts for every tracked conversation."""
        conversations = await self.tracked_conversations(pins)
        counts = await counter.unread_counts([c.id for c in conversations])
        return [UnreadEntry(c, counts[c.id]) for c in conversations]
