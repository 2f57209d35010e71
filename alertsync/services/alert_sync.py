"""Alert synchronization service: owner of the local alert collection."""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional

import aiohttp
from loguru import logger

from alertsync.clients import AlertsApiClient
from alertsync.config import PollingSettings
from alertsync.exceptions import AlertSyncError
from alertsync.models import Alert, AlertSource, AlertType, sort_alerts
from alertsync.notifiers import BadgeNotifier
from alertsync.parsers import AlertParser, parse_timestamp
from alertsync.polling import (
    ConnectionState,
    ConnectionStatus,
    LifecycleEvents,
    LongPollClient,
    LongPollDelegate,
)

# Failures of a remote call that are converted into rollback or an error message
REMOTE_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, AlertSyncError)

Revert = Callable[[], None]


class AlertSyncService(LongPollDelegate):
    """
    Single source of truth for the local alert collection.

    The collection is always sorted by priority, then newest first. Mutations
    are optimistic: the local change is applied first, then confirmed remotely,
    and rolled back if the confirmation fails. Mutations and snapshot
    replacement are serialized by one lock; overlapping fetches by another, so
    whichever operation completes last is what the collection reflects.
    """

    def __init__(
        self,
        api: AlertsApiClient,
        notifier: Optional[BadgeNotifier] = None,
        parser: Optional[AlertParser] = None,
        polling_settings: Optional[PollingSettings] = None,
        lifecycle: Optional[LifecycleEvents] = None,
    ):
        self.api = api
        self.notifier = notifier
        self.parser = parser or AlertParser()
        self.polling_settings = polling_settings or PollingSettings()
        self.lifecycle = lifecycle

        self._alerts: list[Alert] = []
        self.is_loading = False
        self.error_message: Optional[str] = None
        self.polling_state = ConnectionState.idle()
        self.last_screening: Optional[datetime] = None

        self._mutation_lock = asyncio.Lock()
        self._fetch_lock = asyncio.Lock()
        self._poll_client: Optional[LongPollClient] = None
        self._pending: set[asyncio.Task] = set()

    # Reads

    @property
    def alerts(self) -> list[Alert]:
        return list(self._alerts)

    @property
    def poll_client(self) -> Optional[LongPollClient]:
        return self._poll_client

    def unread_count(self) -> int:
        return sum(1 for alert in self._alerts if not alert.is_read)

    def get_alert(self, alert_id: int) -> Optional[Alert]:
        index = self._index_of(alert_id)
        return self._alerts[index] if index is not None else None

    def filter_alerts(
        self,
        type: Optional[AlertType] = None,
        source: Optional[AlertSource] = None,
        search: Optional[str] = None,
        unread_only: bool = False,
    ) -> list[Alert]:
        """Filter the collection, keeping its order."""
        result = self._alerts
        if type:
            result = [a for a in result if a.type == type]
        if source:
            result = [a for a in result if a.source == source]
        if search:
            needle = search.lower()
            result = [a for a in result if needle in a.symbol.lower() or needle in a.message.lower()]
        if unread_only:
            result = [a for a in result if not a.is_read]
        return list(result)

    # Fetch

    async def fetch_all(self) -> bool:
        """Replace the collection with a fresh server snapshot. Returns False on failure."""
        async with self._fetch_lock:
            self.is_loading = True
            self.error_message = None
            try:
                # Fetch alerts and last screening time concurrently
                alerts, screening = await asyncio.gather(
                    self._fetch_snapshot(),
                    self._fetch_last_screening(),
                    return_exceptions=True,
                )

                if isinstance(alerts, asyncio.CancelledError):
                    raise alerts
                if isinstance(alerts, BaseException):
                    if isinstance(alerts, REMOTE_ERRORS):
                        logger.error(f"Error fetching alerts: {alerts!r}")
                    else:
                        logger.opt(exception=alerts).error("Unexpected error fetching alerts")
                    self.error_message = f"Failed to fetch alerts: {alerts}"
                    return False

                async with self._mutation_lock:
                    self._alerts = alerts

                if isinstance(screening, datetime):
                    self.last_screening = screening

                logger.info(f"Fetched {len(alerts)} alerts")
            finally:
                self.is_loading = False

        await self._push_badge()
        return True

    async def _fetch_snapshot(self) -> list[Alert]:
        envelope = await self.api.fetch_all_records()
        return self.parser.parse_many(envelope.items)

    async def _fetch_last_screening(self) -> Optional[datetime]:
        # Best effort, never fails the primary fetch
        try:
            raw = await self.api.fetch_last_screening()
        except REMOTE_ERRORS as e:
            logger.debug(f"Last screening fetch failed: {e!r}")
            return None
        return parse_timestamp(raw)

    # Optimistic mutations

    async def mark_as_read(self, alert_id: int) -> bool:
        """Mark an alert read. Already-read alerts are left alone without a remote call."""
        async with self._mutation_lock:
            alert = self.get_alert(alert_id)
            if alert is None:
                logger.warning(f"Cannot mark unknown alert {alert_id} as read")
                return False
            if alert.is_read:
                return True

            return await self._optimistic(
                apply=lambda: self._set_read_flag(alert_id, True),
                confirm=lambda: self.api.update_status(alert_id, "READ"),
                description=f"mark alert {alert_id} as read",
            )

    async def mark_as_unread(self, alert_id: int) -> bool:
        """
        Mark an alert unread.

        Always confirms remotely, even if the local flag already says unread:
        the caller may be holding a stale copy (e.g. an alert that was just
        marked read when it was opened).
        """
        async with self._mutation_lock:
            return await self._optimistic(
                apply=lambda: self._set_read_flag(alert_id, False),
                confirm=lambda: self.api.update_status(alert_id, "NEW"),
                description=f"mark alert {alert_id} as unread",
            )

    async def mark_all_as_read(self) -> int:
        """Mark every unread alert read. Returns how many were confirmed."""
        unread_ids = [alert.id for alert in self._alerts if not alert.is_read]
        confirmed = 0
        for alert_id in unread_ids:
            if await self.mark_as_read(alert_id):
                confirmed += 1
        return confirmed

    async def delete_alert(self, alert_id: int) -> bool:
        """Remove an alert locally, then delete it on the server."""
        async with self._mutation_lock:
            if self._index_of(alert_id) is None:
                logger.warning(f"Cannot delete unknown alert {alert_id}")
                return False

            return await self._optimistic(
                apply=lambda: self._remove(alert_id),
                confirm=lambda: self.api.delete_alert(alert_id),
                description=f"delete alert {alert_id}",
            )

    async def _optimistic(
        self,
        apply: Callable[[], Revert],
        confirm: Callable[[], Awaitable[None]],
        description: str,
    ) -> bool:
        """Apply a local change, confirm it remotely, restore the snapshot on failure."""
        revert = apply()
        try:
            await confirm()
        except REMOTE_ERRORS as e:
            logger.error(f"Failed to {description}, rolling back: {e!r}")
            revert()
            return False
        except Exception:
            logger.exception(f"Unexpected error trying to {description}, rolling back")
            revert()
            return False
        except BaseException:
            # Cancelled mid-confirmation: local state must not outlive the call
            revert()
            raise

        logger.success(f"Confirmed: {description}")
        await self._push_badge()
        self.refresh_polling()
        return True

    def _set_read_flag(self, alert_id: int, is_read: bool) -> Revert:
        alert = self.get_alert(alert_id)
        if alert is None:
            return lambda: None

        previous = alert.is_read
        alert.is_read = is_read

        def revert() -> None:
            alert.is_read = previous

        return revert

    def _remove(self, alert_id: int) -> Revert:
        index = self._index_of(alert_id)
        removed = self._alerts.pop(index)

        def revert() -> None:
            self._alerts.insert(min(index, len(self._alerts)), removed)
            self._alerts = sort_alerts(self._alerts)

        return revert

    def _index_of(self, alert_id: int) -> Optional[int]:
        for index, alert in enumerate(self._alerts):
            if alert.id == alert_id:
                return index
        return None

    async def _push_badge(self) -> None:
        if not self.notifier:
            return
        try:
            await self.notifier.update_badge(self.unread_count())
        except Exception as e:
            logger.warning(f"Badge update failed: {e}")

    # Long polling

    def start_polling(self) -> None:
        """Create a long-poll client wired to this service and start it."""
        self.stop_polling()

        self._poll_client = LongPollClient(
            self.api,
            delegate=self,
            lifecycle=self.lifecycle,
            settings=self.polling_settings,
        )
        self._poll_client.start()
        logger.info("Started long-polling service")

    def stop_polling(self) -> None:
        if self._poll_client:
            self._poll_client.stop()
            self._poll_client = None

    def refresh_polling(self) -> None:
        """Force a new poll cycle, e.g. after a local write."""
        if self._poll_client:
            self._poll_client.refresh()

    async def close(self) -> None:
        """Stop polling and wait for background fetches to settle."""
        client = self._poll_client
        self.stop_polling()
        if client:
            await client.wait_closed()

        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _schedule_fetch(self, reason: str) -> None:
        logger.info(f"{reason} - refreshing alerts")
        task = asyncio.get_running_loop().create_task(self.fetch_all())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # LongPollDelegate

    def on_changes_detected(self) -> None:
        self._schedule_fetch("Changes detected")

    def on_resumed_from_background(self) -> None:
        self._schedule_fetch("Resuming from background")

    def on_state_changed(self, state: ConnectionState) -> None:
        self.polling_state = state

        if state.status == ConnectionStatus.POLLING:
            logger.debug("Long-polling: Active")
        elif state.status == ConnectionStatus.RECONNECTING:
            logger.info(f"Long-polling: Reconnecting (attempt {state.attempt})")
        elif state.status == ConnectionStatus.STOPPED:
            logger.info("Long-polling: Stopped")
        elif state.status == ConnectionStatus.ERROR:
            logger.error(f"Long-polling error: {state.message}")

    def on_transient_error(self, error: Exception) -> None:
        # Reconnection is automatic, so this is never surfaced to the user
        logger.warning(f"Long-polling encountered error: {error!r}")
