"""Interfaces of the collaborators the notifier depends on."""

from collections.abc import Sequence
from typing import Protocol

from slack_notifier.db.models import Pin
from slack_notifier.slack.models import ConversationKind


class CredentialStore(Protocol):
    async def get_token(self) -> str | None:
        """Return the bearer token, or None when unauthenticated."""
        ...


class PinStore(Protocol):
    async def get_pins(self) -> list[Pin]:
        """Pinned DMs, in display order."""
        ...


class NotificationSink(Protocol):
    async def present(self, message: str, actions: Sequence[str]) -> str | None:
        """Show ``message``; return the chosen action or None if dismissed."""
        ...


class ConversationOpener(Protocol):
    async def open(self, conversation_id: str, label: str, kind: ConversationKind) -> None: ...
