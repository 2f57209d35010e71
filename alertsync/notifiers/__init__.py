"""Unread-count (badge) notifiers."""

from .badge import LogBadgeNotifier, MultiBadgeNotifier, WebhookBadgeNotifier
from .base import BadgeNotifier

__all__ = ["BadgeNotifier", "LogBadgeNotifier", "MultiBadgeNotifier", "WebhookBadgeNotifier"]
