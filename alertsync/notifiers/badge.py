"""Badge notifiers."""

import asyncio
from typing import Optional

import aiohttp
from loguru import logger

from .base import BadgeNotifier


class LogBadgeNotifier(BadgeNotifier):
    """Writes badge updates to the log."""

    def __init__(self):
        self.last_count: Optional[int] = None

    async def update_badge(self, count: int) -> bool:
        if count != self.last_count:
            logger.info(f"Badge: {count} unread alerts")
        self.last_count = count
        return True


class WebhookBadgeNotifier(BadgeNotifier):
    """POSTs {"unread_count": n} to a webhook."""

    def __init__(self, webhook_url: str, timeout: float = 10):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def update_badge(self, count: int) -> bool:
        try:
            session = await self._get_session()
            async with session.post(
                self.webhook_url,
                json={"unread_count": count},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status in (200, 204):
                    logger.debug(f"Sent badge update: {count}")
                    return True
                logger.error(f"Badge webhook error: HTTP {response.status}")
                return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to send badge update: {e!r}")
            return False


class MultiBadgeNotifier(BadgeNotifier):
    """Fan a badge update out to several notifiers."""

    def __init__(self, notifiers: list[BadgeNotifier]):
        self.notifiers = notifiers

    async def update_badge(self, count: int) -> bool:
        results = await asyncio.gather(
            *[n.update_badge(count) for n in self.notifiers],
            return_exceptions=True,
        )
        for notifier, result in zip(self.notifiers, results):
            if isinstance(result, Exception):
                logger.error(f"Badge notifier {type(notifier).__name__} failed: {result}")
        return all(result is True for result in results)

    async def close(self) -> None:
        for notifier in self.notifiers:
            await notifier.close()
