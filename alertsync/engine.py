"""Main Orchestration Engine."""

from typing import List, Optional

from loguru import logger

from alertsync.clients import AlertsApiClient
from alertsync.config import Settings, settings
from alertsync.notifiers import BadgeNotifier, LogBadgeNotifier, MultiBadgeNotifier, WebhookBadgeNotifier
from alertsync.polling import LifecycleEvents
from alertsync.services import AlertSyncService


class AlertSyncEngine:
    """Wires the API client, badge notifiers, sync service and long-poll client together."""

    def __init__(self, config: Optional[Settings] = None, lifecycle: Optional[LifecycleEvents] = None):
        self.config = config or settings
        self.lifecycle = lifecycle or LifecycleEvents()
        self.running = False

        # 1. Remote API
        self.api = AlertsApiClient(self.config.api)

        # 2. Badge collaborators
        self.notifier = self._create_notifier()

        # 3. Local mirror
        self.service = AlertSyncService(
            self.api,
            notifier=self.notifier,
            polling_settings=self.config.polling,
            lifecycle=self.lifecycle,
        )

    def _create_notifier(self) -> Optional[BadgeNotifier]:
        """Create badge notifier based on settings."""
        notifiers: List[BadgeNotifier] = []

        if self.config.badge.log_updates:
            notifiers.append(LogBadgeNotifier())

        if self.config.badge.webhook_url:
            notifiers.append(WebhookBadgeNotifier(self.config.badge.webhook_url))
            logger.info("Badge webhook notifier initialized")

        if not notifiers:
            return None
        if len(notifiers) == 1:
            return notifiers[0]
        return MultiBadgeNotifier(notifiers)

    async def start(self) -> None:
        if self.running:
            return
        self.running = True
        logger.info("alertsync engine starting...")

        await self.service.fetch_all()
        if self.config.polling.enabled:
            self.service.start_polling()
        else:
            logger.info("Long-polling disabled")

    async def stop(self) -> None:
        if not self.running:
            return
        self.running = False

        await self.service.close()
        await self.api.close()
        if self.notifier:
            await self.notifier.close()
        logger.info("alertsync engine stopped")
