"""Per-token session state shared by the gateway's consumers."""

import asyncio
from dataclasses import dataclass, field

from slack_notifier.slack.models import Identity, ts_key


@dataclass
class SlackSession:
    """State scoped to one authenticated session.

    Holds the resolved identity, read markers recorded locally by
    mark-read actions, and resolved user names. Nothing here is shared
    between sessions.
    """

    identity: Identity | None = None
    read_markers: dict[str, str] = field(default_factory=dict)
    user_names: dict[str, str] = field(default_factory=dict)
    # Serializes identity resolution across concurrent workers
    identity_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def user_id(self) -> str | None:
        return self.identity.user_id if self.identity else None

    def note_read(self, conversation_id: str, ts: str) -> None:
        """Record that ``conversation_id`` was read up to ``ts``."""
        current = self.read_markers.get(conversation_id)
        if current is None or ts_key(ts) > ts_key(current):
            self.read_markers[conversation_id] = ts

    def effective_last_read(self, conversation_id: str, remote: str | None) -> str | None:
        """Later of the remote marker and the locally recorded one."""
        local = self.read_markers.get(conversation_id)
        if local and (not remote or ts_key(local) > ts_key(remote)):
            return local
        return remote
