"""Business logic services."""

from slack_notifier.services.conversations import ConversationService
from slack_notifier.services.notifications import Notifier
from slack_notifier.services.unread import UnreadCounter


__all__ = ['ConversationService', 'Notifier', 'UnreadCounter']
