"""Background poller that turns unread changes into notifications."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from slack_notifier.config import get_config
from slack_notifier.protocols import CredentialStore, PinStore
from slack_notifier.services.conversations import ConversationService
from slack_notifier.services.notifications import Notifier
from slack_notifier.services.snapshot import NotificationEvent, UnreadSnapshot, compute_deltas
from slack_notifier.services.unread import UnreadCounter
from slack_notifier.slack.client import SlackClient
from slack_notifier.slack.session import SlackSession


logger = logging.getLogger(__name__)


class UnreadPoller:
    """Takes an unread snapshot every ``poll_interval`` seconds.

    The interval is a fixed delay between the end of one cycle and the
    start of the next, so cycles never overlap. The first successful cycle
    after :meth:`start` only records a baseline; later cycles notify once
    per conversation whose count went up.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        pin_store: PinStore,
        notifier: Notifier,
        poll_interval: int | None = None,
        concurrency: int | None = None,
        lookback: int | None = None,
        notify_new_conversations: bool | None = None,
        client_factory: Callable[[str], SlackClient] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        config = get_config()
        self.credentials = credentials
        self.pin_store = pin_store
        self.notifier = notifier
        self.poll_interval = poll_interval or config.poll_interval_seconds
        self.concurrency = concurrency or config.concurrency_limit
        self.lookback = lookback or config.unread_lookback
        if notify_new_conversations is None:
            notify_new_conversations = config.notify_new_conversations
        self.notify_new_conversations = notify_new_conversations
        self.client_factory = client_factory or (
            lambda token: SlackClient(token, timeout=config.request_timeout_seconds)
        )
        self._sleep = sleep

        self._snapshot: UnreadSnapshot | None = None
        self._running = False
        # Bumped on every start; loops and cycles from an older run see a stale value
        self._generation = 0
        self._task: asyncio.Task | None = None
        self._stale_tasks: set[asyncio.Task] = set()
        self._timer: asyncio.Future | None = None

        self._token: str | None = None
        self._client: SlackClient | None = None
        self._session: SlackSession | None = None

    @property
    def snapshot(self) -> UnreadSnapshot | None:
        return self._snapshot

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start polling in the background. No-op if already running."""
        if self._running:
            return
        self._running = True
        self._generation += 1
        self._snapshot = None
        logger.info(f'Starting poller (interval: {self.poll_interval}s, concurrency: {self.concurrency})')
        if self._task is not None and not self._task.done():
            self._stale_tasks.add(self._task)
            self._task.add_done_callback(self._stale_tasks.discard)
        self._task = asyncio.create_task(self._run(self._generation))

    def stop(self) -> None:
        """Stop polling. A cycle already in flight is allowed to finish."""
        if not self._running:
            return
        self._running = False
        if self._timer is not None:
            self._timer.cancel()
        logger.info('Poller stopping...')

    async def wait_stopped(self) -> None:
        """Wait for the current run and any run superseded by a restart."""
        tasks = [*self._stale_tasks, *([self._task] if self._task is not None else [])]
        if tasks:
            await asyncio.gather(*tasks)

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._generation

    async def _run(self, generation: int) -> None:
        while self._is_current(generation):
            await self.run_cycle()
            if not self._is_current(generation):
                break

            timer = self._timer = asyncio.ensure_future(self._sleep(self.poll_interval))
            try:
                await timer
            except asyncio.CancelledError:
                if self._is_current(generation):
                    raise
            finally:
                if self._timer is timer:
                    self._timer = None
        logger.info('Poller stopped')

    def _session_for(self, token: str) -> tuple[SlackClient, SlackSession]:
        # New token, new session: nothing cached for the old identity survives
        if token != self._token or self._client is None or self._session is None:
            self._token = token
            self._client = self.client_factory(token)
            self._session = SlackSession()
        return self._client, self._session

    async def build_snapshot(self, token: str) -> UnreadSnapshot:
        """Fetch tracked conversations and their unread counts. Raises if listing fails."""
        client, session = self._session_for(token)
        pins = await self.pin_store.get_pins()
        conversations = await ConversationService(client, session).tracked_conversations(pins)

        counter = UnreadCounter(client, session, lookback=self.lookback, concurrency=self.concurrency)
        counts = await counter.unread_counts([c.id for c in conversations])
        return UnreadSnapshot(counts, {c.id: c for c in conversations})

    async def run_cycle(self) -> list[NotificationEvent]:
        """Run one poll cycle and return the events it emitted.

        A cycle that outlives a restart is discarded: the restarted run owns
        the baseline.
        """
        generation = self._generation
        try:
            token = await self.credentials.get_token()
            if not token:
                logger.debug('No Slack token available, skipping poll cycle')
                return []
            snapshot = await self.build_snapshot(token)
        except Exception as e:
            logger.exception(f'Poll cycle failed, keeping previous snapshot: {e}')
            return []

        if generation != self._generation:
            logger.info('Poller restarted during cycle, discarding its snapshot')
            return []

        if self._snapshot is None:
            self._snapshot = snapshot
            logger.info(f'Recorded baseline for {len(snapshot)} conversations')
            return []

        events = compute_deltas(self._snapshot, snapshot, notify_new=self.notify_new_conversations)
        self._snapshot = snapshot
        if events:
            logger.info(f'{len(events)} conversations have new messages')
            await self.notifier.dispatch(events)
        return events
