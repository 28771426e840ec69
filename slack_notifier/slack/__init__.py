"""Slack integration module."""

from slack_notifier.slack.client import SlackClient
from slack_notifier.slack.errors import (
    AuthError,
    NotFoundError,
    RateLimitError,
    ScopeError,
    SlackError,
    TransportError,
    UnknownError,
)


__all__ = [
    'AuthError',
    'NotFoundError',
    'RateLimitError',
    'ScopeError',
    'SlackClient',
    'SlackError',
    'TransportError',
    'UnknownError',
]
