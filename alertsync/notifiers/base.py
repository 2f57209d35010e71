"""Base badge notifier interface."""

from abc import ABC, abstractmethod


class BadgeNotifier(ABC):
    """Interface for publishing the unread alert count."""

    @abstractmethod
    async def update_badge(self, count: int) -> bool:
        """Publish the unread count. Returns False on delivery failure."""
        pass

    async def close(self) -> None:
        """Release any resources held by the notifier."""
        pass
