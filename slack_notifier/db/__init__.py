"""Database module for Slack Notifier."""

from slack_notifier.db.connection import close_pool, get_pool
from slack_notifier.db.models import Pin
from slack_notifier.db.repository import PinRepository


__all__ = [
    'Pin',
    'PinRepository',
    'close_pool',
    'get_pool',
]
