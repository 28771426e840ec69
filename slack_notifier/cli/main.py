#!/usr/bin/env python3
"""CLI entry point for Slack Notifier."""

import asyncio
import logging
import signal
import sys

import click

from slack_notifier.config import Config, EnvCredentialStore, get_config
from slack_notifier.db.repository import open_pin_store
from slack_notifier.services.conversations import ConversationService
from slack_notifier.services.notifications import ConsoleOpener, ConsoleSink, Notifier
from slack_notifier.services.unread import UnreadCounter
from slack_notifier.slack.client import SlackClient
from slack_notifier.slack.errors import SlackError
from slack_notifier.slack.models import ConversationKind
from slack_notifier.slack.poller import UnreadPoller
from slack_notifier.slack.session import SlackSession


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def run_async(coro):
    """Run an async coroutine."""
    return asyncio.run(coro)


def _load_config() -> Config:
    config = get_config()
    errors = config.validate()
    if errors:
        for error in errors:
            click.echo(f'Config error: {error}', err=True)
        sys.exit(1)
    return config


def _fail(error: Exception) -> None:
    message = error.explanation if isinstance(error, SlackError) else str(error)
    click.echo(f'Error: {message}', err=True)
    sys.exit(1)


def _client(config: Config) -> SlackClient:
    return SlackClient(config.slack_user_token, timeout=config.request_timeout_seconds)


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging')
def cli(debug: bool):
    """Slack Notifier - unread tracking and notifications for Slack."""
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.option('--auto-open', is_flag=True, help='Print the conversation history with each notification')
def daemon(auto_open: bool):
    """Start the background notification poller."""
    _load_config()

    async def run_daemon():
        async with open_pin_store() as repository:
            logger.info('Connected to database')

            credentials = EnvCredentialStore()
            opener = ConsoleOpener(credentials)
            notifier = Notifier(ConsoleSink(auto_open=auto_open), opener)
            poller = UnreadPoller(credentials, repository, notifier)

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, poller.stop)

            await poller.start()
            await poller.wait_stopped()

    click.echo('Starting Slack Notifier daemon...')
    run_async(run_daemon())


@cli.command()
def auth():
    """Check that the configured token works."""
    config = _load_config()

    async def check():
        try:
            identity = await _client(config).authenticate()
        except SlackError as e:
            _fail(e)
        click.echo(f'Authenticated as {identity.user} ({identity.user_id}) on {identity.team or identity.team_id}')

    run_async(check())


@cli.command()
@click.option('--all', 'show_all', is_flag=True, help='Include conversations with nothing unread')
def unread(show_all: bool):
    """Show unread counts for member channels and pinned DMs."""
    config = _load_config()

    async def show():
        client = _client(config)
        session = SlackSession()
        try:
            async with open_pin_store() as repository:
                pins = await repository.get_pins()

            counter = UnreadCounter(
                client, session, lookback=config.unread_lookback, concurrency=config.concurrency_limit
            )
            entries = await ConversationService(client, session).overview(counter, pins)
        except SlackError as e:
            _fail(e)

        for title, kind in (('Channels', ConversationKind.CHANNEL), ('Direct Messages', ConversationKind.DIRECT)):
            section = [e for e in entries if e.conversation.kind is kind and (show_all or e.unread)]
            click.echo(click.style(f'\n{title}', bold=True))
            if not section:
                click.echo(click.style('  nothing unread', dim=True))
            for entry in section:
                count = f'{entry.unread}+' if entry.unread >= config.unread_lookback else str(entry.unread)
                color = 'yellow' if entry.unread else 'white'
                click.echo(f'  {click.style(entry.conversation.label, fg=color)}  {count}')
        click.echo()

    run_async(show())


@cli.command()
@click.argument('conversation')
@click.option('--limit', default=20, help='Number of messages to show (default: 20)')
def history(conversation: str, limit: int):
    """Show recent messages of a conversation."""
    config = _load_config()

    async def show():
        service = ConversationService(_client(config), SlackSession())
        try:
            lines = await service.history(conversation, limit=limit)
        except SlackError as e:
            _fail(e)

        if not lines:
            click.echo('No messages.')
            return
        for line in lines:
            click.echo(f'{click.style(line.author, fg="cyan")}: {line.text}')
            if line.reactions:
                click.echo(click.style(f'  {line.reactions}', dim=True))

    run_async(show())


@cli.command()
@click.argument('conversation')
@click.argument('text')
def send(conversation: str, text: str):
    """Send a message to a conversation."""
    config = _load_config()

    async def post():
        service = ConversationService(_client(config), SlackSession())
        try:
            ts = await service.send_message(conversation, text)
        except (SlackError, ValueError) as e:
            _fail(e)
        click.echo(f'Sent ({ts})')

    run_async(post())


@cli.command()
def users():
    """List workspace members (to find a user id to pin)."""
    config = _load_config()

    async def show():
        service = ConversationService(_client(config), SlackSession())
        try:
            members = await service.list_users()
        except SlackError as e:
            _fail(e)
        for user in members:
            click.echo(f'{user.id}  {user.best_name}')

    run_async(show())


@cli.command()
@click.argument('user_id')
def pin(user_id: str):
    """Pin a DM with USER_ID so the daemon watches it."""
    config = _load_config()

    async def add():
        try:
            async with open_pin_store() as repository:
                service = ConversationService(_client(config), SlackSession())
                pinned = await service.pin_user(user_id, repository)
        except SlackError as e:
            _fail(e)
        click.echo(f'Pinned DM with {pinned.display_name} ({pinned.conversation_id})')

    run_async(add())


@cli.command()
@click.argument('conversation')
def unpin(conversation: str):
    """Remove a pinned DM."""
    _load_config()

    async def remove():
        async with open_pin_store() as repository:
            removed = await repository.remove_pin(conversation)
        click.echo('Unpinned.' if removed else f'{conversation} was not pinned.')

    run_async(remove())


@cli.command()
def pins():
    """List pinned DMs."""
    _load_config()

    async def show():
        async with open_pin_store() as repository:
            pinned = await repository.get_pins()
        if not pinned:
            click.echo('No pinned DMs.')
        for p in pinned:
            click.echo(f'{p.conversation_id}  {p.display_name} ({p.user_id})')

    run_async(show())


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
