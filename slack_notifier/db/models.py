"""Database models for Slack Notifier.

These are dataclasses representing database rows, not ORM models.
We use raw asyncpg for better async performance.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Pin:
    """Direct-message conversation pinned for notifications."""

    user_id: str
    display_name: str
    conversation_id: str
    created_at: datetime | None = None
