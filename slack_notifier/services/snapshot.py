"""Unread snapshots and the deltas between them."""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from slack_notifier.slack.models import ConversationKind


@dataclass(frozen=True)
class TrackedConversation:
    """A conversation the poller watches."""

    id: str
    label: str
    kind: ConversationKind


@dataclass(frozen=True)
class NotificationEvent:
    """Unread count for a conversation went up by ``delta``."""

    conversation_id: str
    name: str
    delta: int
    kind: ConversationKind = ConversationKind.CHANNEL


class UnreadSnapshot:
    """Immutable conversation id -> unread count mapping."""

    def __init__(self, counts: Mapping[str, int], conversations: Mapping[str, TrackedConversation] | None = None):
        self._counts = MappingProxyType(dict(counts))
        self._conversations = MappingProxyType(dict(conversations or {}))

    @property
    def counts(self) -> Mapping[str, int]:
        return self._counts

    def conversation(self, conversation_id: str) -> TrackedConversation | None:
        return self._conversations.get(conversation_id)

    def get(self, conversation_id: str, default: int = 0) -> int:
        return self._counts.get(conversation_id, default)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._counts

    def __len__(self) -> int:
        return len(self._counts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnreadSnapshot):
            return NotImplemented
        return dict(self._counts) == dict(other._counts)

    def __repr__(self) -> str:
        return f'UnreadSnapshot({dict(self._counts)!r})'


def compute_deltas(
    previous: UnreadSnapshot,
    current: UnreadSnapshot,
    notify_new: bool = False,
) -> list[NotificationEvent]:
    """Events for every conversation whose unread count increased.

    A conversation missing from ``previous`` counts from 0 when
    ``notify_new`` is set, otherwise it is silently absorbed. Ids only in
    ``previous`` are ignored.
    """
    events = []
    for conversation_id, count in current.counts.items():
        if conversation_id not in previous and not notify_new:
            continue
        delta = count - previous.get(conversation_id, 0)
        if delta <= 0:
            continue
        tracked = current.conversation(conversation_id)
        events.append(
            NotificationEvent(
                conversation_id=conversation_id,
                name=tracked.label if tracked else conversation_id,
                delta=delta,
                kind=tracked.kind if tracked else ConversationKind.CHANNEL,
            )
        )
    return events
