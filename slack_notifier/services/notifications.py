"""Turning unread deltas into user-facing notifications."""

import logging
from collections.abc import Callable, Sequence

import click

from slack_notifier.config import get_config
from slack_notifier.protocols import ConversationOpener, CredentialStore, NotificationSink
from slack_notifier.services.conversations import ConversationService
from slack_notifier.services.snapshot import NotificationEvent
from slack_notifier.slack.client import SlackClient
from slack_notifier.slack.models import ConversationKind
from slack_notifier.slack.session import SlackSession


logger = logging.getLogger(__name__)

OPEN_ACTION = 'Open'


def format_notification(event: NotificationEvent) -> str:
    if event.delta == 1:
        return f'New message in {event.name}'
    return f'{event.delta} new messages in {event.name}'


class Notifier:
    """Presents events on a sink and routes "Open" to the opener."""

    def __init__(self, sink: NotificationSink, opener: ConversationOpener | None = None):
        self.sink = sink
        self.opener = opener

    async def notify(self, event: NotificationEvent) -> None:
        actions = [OPEN_ACTION] if self.opener else []
        choice = await self.sink.present(format_notification(event), actions)
        if choice == OPEN_ACTION and self.opener:
            label = event.name.removeprefix('#') if event.kind is ConversationKind.CHANNEL else event.name
            await self.opener.open(event.conversation_id, label, event.kind)

    async def dispatch(self, events: Sequence[NotificationEvent]) -> None:
        """Notify for each event; one failing notification doesn't block the rest."""
        for event in events:
            try:
                await self.notify(event)
            except Exception:
                logger.exception(f'Failed to notify for {event.conversation_id}')


class ConsoleSink:
    """Prints notifications. With ``auto_open`` it picks "Open" every time."""

    def __init__(self, auto_open: bool = False):
        self.auto_open = auto_open

    async def present(self, message: str, actions: Sequence[str]) -> str | None:
        click.echo(click.style(f'[slack] {message}', fg='yellow', bold=True))
        if self.auto_open and OPEN_ACTION in actions:
            return OPEN_ACTION
        return None


class ConsoleOpener:
    """Opens a conversation by printing its recent history.

    The token is looked up through ``credentials`` on every open, the same
    way the poller gets it, so a rotated or revoked token is seen here too.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        limit: int = 10,
        client_factory: Callable[[str], SlackClient] | None = None,
    ):
        self.credentials = credentials
        self.limit = limit
        self.client_factory = client_factory or (
            lambda token: SlackClient(token, timeout=get_config().request_timeout_seconds)
        )
        self._token: str | None = None
        self._service: ConversationService | None = None

    async def _service_for_current_token(self) -> ConversationService | None:
        token = await self.credentials.get_token()
        if not token:
            return None
        if token != self._token or self._service is None:
            self._token = token
            self._service = ConversationService(self.client_factory(token), SlackSession())
        return self._service

    async def open(self, conversation_id: str, label: str, kind: ConversationKind) -> None:
        service = await self._service_for_current_token()
        if service is None:
            logger.warning(f'No Slack token available, cannot open {conversation_id}')
            return
        lines = await service.history(conversation_id, limit=self.limit)
        title = f'#{label}' if kind is ConversationKind.CHANNEL else label
        click.echo(click.style(f'\n{title}', bold=True))
        click.echo(click.style('-' * 40, dim=True))
        for line in lines:
            click.echo(f'  {click.style(line.author, fg="cyan")}: {line.text}')
            click.echo(click.style(f'    {line.link}', dim=True))
        click.echo()
