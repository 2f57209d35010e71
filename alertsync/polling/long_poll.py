"""Long-polling client for server-side alert changes."""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import aiohttp
from loguru import logger
from pydantic import ValidationError

from alertsync.clients import AlertsApiClient
from alertsync.config import PollingSettings
from alertsync.exceptions import ApiStatusError, InvalidBaseURLError
from alertsync.models import ChangesResponse
from .backoff import Backoff
from .delegate import LongPollDelegate
from .lifecycle import LifecycleEvents, LifecycleListener
from .state import ConnectionState


class PollOutcome(Enum):
    RESTART = "restart"  # next cycle immediately
    BACKOFF = "backoff"  # next cycle after a backoff delay
    HALT = "halt"  # unusable configuration, wait for refresh/start


def current_timestamp() -> str:
    """ISO-8601 UTC timestamp with milliseconds, e.g. 2025-01-02T03:04:05.678Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class LongPollClient(LifecycleListener):
    """
    Keeps one standing request against the changes endpoint.

    The request cycle runs as a single asyncio task. Cancelling that task is how
    stop(), refresh() and suspension abort the in-flight request, so a
    cancellation never counts as a failure and never touches the backoff.
    """

    def __init__(
        self,
        api: AlertsApiClient,
        delegate: Optional[LongPollDelegate] = None,
        lifecycle: Optional[LifecycleEvents] = None,
        settings: Optional[PollingSettings] = None,
        backoff: Optional[Backoff] = None,
    ):
        self.api = api
        self.delegate = delegate
        self.settings = settings or PollingSettings()
        self._lifecycle = lifecycle
        self._backoff = backoff or Backoff(
            initial=self.settings.initial_backoff,
            maximum=self.settings.max_backoff,
            jitter_ratio=self.settings.jitter_ratio,
        )

        self.state = ConnectionState.idle()
        self.last_change_timestamp: Optional[str] = None

        self._active = False
        self._suspended = False
        self._task: Optional[asyncio.Task] = None
        self._cancelled: set[asyncio.Task] = set()
        self._grace_task: Optional[asyncio.Task] = None
        # Bumped whenever a cycle is started or cancelled; stale tasks stay silent
        self._generation = 0

    @property
    def is_running(self) -> bool:
        return self._active

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    # Public interface. Must be called from within the running event loop.

    def start(self) -> None:
        """Start long-polling. A second call while running is a no-op."""
        if self._active:
            logger.debug("LongPoll: Already active")
            return

        self._active = True
        self._suspended = False
        self._backoff.reset()
        if self._lifecycle:
            self._lifecycle.subscribe(self)

        logger.info("LongPoll: Starting...")
        self._set_state(ConnectionState.polling())
        self._spawn_cycle()

    def stop(self) -> None:
        """Cancel the in-flight request and stop emitting events."""
        if not self._active:
            return

        self._active = False
        self._suspended = False
        self._cancel_cycle()
        self._end_grace_period()
        if self._lifecycle:
            self._lifecycle.unsubscribe(self)

        logger.info("LongPoll: Stopped")
        self._set_state(ConnectionState.stopped())

    def refresh(self) -> None:
        """Abort the current request and poll again right away."""
        if not self._active or self._suspended:
            return

        self._cancel_cycle()
        self._backoff.reset()
        self._spawn_cycle()

    async def wait_closed(self) -> None:
        """Wait until a cancelled request task has fully unwound."""
        pending = [t for t in (self._task, self._grace_task, *self._cancelled) if t and not t.done()]
        if pending:
            await asyncio.wait(pending)

    # Lifecycle

    def on_suspend(self) -> None:
        if not self._active or self._suspended:
            return

        logger.info("LongPoll: Host suspending, cancelling request")
        self._suspended = True
        task = self._cancel_cycle()
        if task is not None and self._grace_task is None:
            self._grace_task = asyncio.get_running_loop().create_task(self._grace_period(task))

    def on_resume(self) -> None:
        if not self._active:
            return

        logger.info("LongPoll: Host resuming")
        self._suspended = False
        self._end_grace_period()

        self._emit("on_resumed_from_background")

        self._backoff.reset()
        self._set_state(ConnectionState.polling())
        self._cancel_cycle()
        self._spawn_cycle()

    def on_terminate(self) -> None:
        self.stop()

    # Request cycle

    def _spawn_cycle(self) -> None:
        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(self._run(self._generation))

    def _cancel_cycle(self) -> Optional[asyncio.Task]:
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            self._cancelled.add(task)
            task.add_done_callback(self._cancelled.discard)
            return task
        return None

    def _is_current(self, generation: int) -> bool:
        return self._active and not self._suspended and generation == self._generation

    async def _run(self, generation: int) -> None:
        try:
            while self._is_current(generation):
                self._set_state(ConnectionState.polling())
                outcome = await self._poll_once()

                if not self._is_current(generation) or outcome is PollOutcome.HALT:
                    return

                if outcome is PollOutcome.BACKOFF:
                    attempt, delay = self._backoff.next_delay()
                    self._set_state(ConnectionState.reconnecting(attempt))
                    logger.info(f"LongPoll: Retry in {delay:.1f}s (attempt {attempt})")
                    await asyncio.sleep(delay)
        except asyncio.CancelledError:
            logger.debug("LongPoll: Request cancelled")
            raise

    async def _poll_once(self) -> PollOutcome:
        timestamp = self.last_change_timestamp or current_timestamp()

        try:
            async with self.api.open_changes(timestamp, timeout=self.settings.request_timeout) as response:
                status = response.status
                body = await response.read() if status == 200 else b""
        except InvalidBaseURLError as e:
            logger.error(f"LongPoll: {e}")
            self._set_state(ConnectionState.error("Invalid URL"))
            return PollOutcome.HALT
        except asyncio.TimeoutError:
            # Client-side timeout just means the hold period elapsed
            logger.debug("LongPoll: Request timed out - restarting")
            self._backoff.reset()
            return PollOutcome.RESTART
        except aiohttp.ClientError as e:
            logger.warning(f"LongPoll: Network error - {e!r}")
            self._emit("on_transient_error", e)
            return PollOutcome.BACKOFF
        except Exception as e:
            logger.exception("LongPoll: Unexpected error")
            self._emit("on_transient_error", e)
            return PollOutcome.BACKOFF

        logger.debug(f"LongPoll: Received response with status {status}")
        return self._handle_status(status, body)

    def _handle_status(self, status: int, body: bytes) -> PollOutcome:
        if status == 200:
            self._backoff.reset()
            self._handle_changes(body)
            return PollOutcome.RESTART

        if status in (204, 304):
            logger.debug(f"LongPoll: No changes ({status})")
            self._backoff.reset()
            return PollOutcome.RESTART

        if status in (408, 504):
            logger.debug(f"LongPoll: Hold timeout ({status}) - restarting poll")
            self._backoff.reset()
            return PollOutcome.RESTART

        if status == 429:
            logger.warning("LongPoll: Rate limited (429)")
        elif 500 <= status < 600:
            logger.warning(f"LongPoll: Server error ({status})")
        else:
            logger.warning(f"LongPoll: Unexpected status {status}")

        self._emit("on_transient_error", ApiStatusError(status))
        return PollOutcome.BACKOFF

    def _handle_changes(self, body: bytes) -> None:
        if not body.strip():
            logger.info("LongPoll: 200 with no data - assuming changes")
            self._emit("on_changes_detected")
            return

        try:
            payload = ChangesResponse.model_validate_json(body)
        except ValidationError:
            # Fail open: an unreadable payload is treated as a change
            logger.info("LongPoll: Unparseable payload - assuming changes")
            self._emit("on_changes_detected")
            return

        if payload.last_updated:
            self.last_change_timestamp = payload.last_updated

        if payload.has_changes:
            logger.info(f"LongPoll: Changes detected (count={payload.change_count})")
            self._emit("on_changes_detected")

    # Helpers

    async def _grace_period(self, task: asyncio.Task) -> None:
        try:
            done, _ = await asyncio.wait({task}, timeout=self.settings.suspend_grace)
            if not done:
                logger.warning("LongPoll: Request still unwinding after grace period")
        finally:
            if self._grace_task is asyncio.current_task():
                self._grace_task = None

    def _end_grace_period(self) -> None:
        if self._grace_task is not None and not self._grace_task.done():
            self._grace_task.cancel()
        self._grace_task = None

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        self.state = state
        self._emit("on_state_changed", state)

    def _emit(self, event: str, *args) -> None:
        if self.delegate is None:
            return
        try:
            getattr(self.delegate, event)(*args)
        except Exception:
            logger.exception(f"LongPoll: Delegate failed handling {event}")
