"""Typed views of Slack API responses.

Each model is parsed once, at the gateway boundary. Missing required
fields raise ``UnknownError('invalid_response')`` so call sites never
deal with optional keys.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from slack_notifier.slack.errors import UnknownError


class ConversationKind(Enum):
    CHANNEL = 'channel'
    DIRECT = 'direct'


class Visibility(Enum):
    PUBLIC = 'public'
    PRIVATE = 'private'


def _require(data: dict[str, Any], key: str, what: str) -> Any:
    value = data.get(key)
    if value is None or value == '':
        raise UnknownError('invalid_response', f'Slack returned a {what} without "{key}".')
    return value


def ts_key(ts: str) -> Decimal:
    """Sort key for Slack timestamps ("1712345678.000200")."""
    try:
        return Decimal(ts)
    except InvalidOperation:
        return Decimal(0)


@dataclass(frozen=True)
class Conversation:
    """Channel or direct-message conversation."""

    id: str
    name: str
    kind: ConversationKind
    visibility: Visibility
    is_member: bool
    user_id: str | None = None  # DM counterpart

    @property
    def label(self) -> str:
        """Display name as shown to the user."""
        if self.kind is ConversationKind.CHANNEL:
            return f'#{self.name}'
        return self.name

    @classmethod
    def from_slack(cls, data: dict[str, Any]) -> 'Conversation':
        conversation_id = _require(data, 'id', 'conversation')
        is_im = bool(data.get('is_im'))
        return cls(
            id=conversation_id,
            name=data.get('name') or data.get('user') or conversation_id,
            kind=ConversationKind.DIRECT if is_im else ConversationKind.CHANNEL,
            visibility=Visibility.PRIVATE if is_im or data.get('is_private') else Visibility.PUBLIC,
            # DMs don't carry is_member
            is_member=bool(data.get('is_member', is_im)),
            user_id=data.get('user'),
        )


@dataclass(frozen=True)
class ConversationInfo:
    """Result of conversations.info."""

    id: str
    last_read: str | None

    @classmethod
    def from_slack(cls, data: dict[str, Any]) -> 'ConversationInfo':
        channel = data.get('channel')
        if not isinstance(channel, dict):
            raise UnknownError('invalid_response', 'Slack returned conversation info without "channel".')
        # Slack uses "0000000000.000000" for conversations never read
        last_read = channel.get('last_read') or None
        if last_read is not None and ts_key(last_read) == 0:
            last_read = None
        return cls(
            id=_require(channel, 'id', 'conversation'),
            last_read=last_read,
        )


@dataclass(frozen=True)
class Reaction:
    name: str
    count: int
    users: tuple[str, ...] = ()


@dataclass(frozen=True)
class Message:
    """Single message. Empty ``subtype`` means a regular user message."""

    ts: str
    user_id: str | None = None
    text: str = ''
    subtype: str = ''
    bot_id: str | None = None
    username: str | None = None
    thread_ts: str | None = None
    reactions: tuple[Reaction, ...] = ()

    @property
    def is_system(self) -> bool:
        return bool(self.subtype)

    @classmethod
    def from_slack(cls, data: dict[str, Any]) -> 'Message':
        return cls(
            ts=_require(data, 'ts', 'message'),
            user_id=data.get('user'),
            text=data.get('text') or '',
            subtype=data.get('subtype') or '',
            bot_id=data.get('bot_id'),
            username=data.get('username'),
            thread_ts=data.get('thread_ts'),
            reactions=tuple(
                Reaction(name=r['name'], count=r.get('count', 0), users=tuple(r.get('users', ())))
                for r in data.get('reactions', [])
                if r.get('name')
            ),
        )


@dataclass(frozen=True)
class User:
    """Workspace member."""

    id: str
    name: str
    real_name: str | None = None
    display_name: str | None = None
    is_bot: bool = False
    deleted: bool = False

    @property
    def best_name(self) -> str:
        return self.display_name or self.real_name or self.name or self.id

    @classmethod
    def from_slack(cls, data: dict[str, Any]) -> 'User':
        profile = data.get('profile') or {}
        return cls(
            id=_require(data, 'id', 'user'),
            name=data.get('name') or '',
            real_name=profile.get('real_name') or data.get('real_name'),
            display_name=profile.get('display_name') or None,
            is_bot=bool(data.get('is_bot')) or data.get('id') == 'USLACKBOT',
            deleted=bool(data.get('deleted')),
        )


@dataclass(frozen=True)
class Identity:
    """Result of auth.test."""

    user_id: str
    user: str
    team: str | None = None
    team_id: str | None = None

    @classmethod
    def from_slack(cls, data: dict[str, Any]) -> 'Identity':
        return cls(
            user_id=_require(data, 'user_id', 'auth.test response'),
            user=data.get('user') or '',
            team=data.get('team'),
            team_id=data.get('team_id'),
        )
