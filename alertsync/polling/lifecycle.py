"""Host lifecycle events (suspend, resume, terminate)."""

from loguru import logger


class LifecycleListener:
    """Receives host lifecycle transitions. Override what you need."""

    def on_suspend(self) -> None:
        pass

    def on_resume(self) -> None:
        pass

    def on_terminate(self) -> None:
        pass


class LifecycleEvents:
    """Injectable source of lifecycle transitions for the host process."""

    def __init__(self):
        self._listeners: list[LifecycleListener] = []

    def subscribe(self, listener: LifecycleListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: LifecycleListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def suspend(self) -> None:
        logger.info("Lifecycle: suspending")
        self._dispatch("on_suspend")

    def resume(self) -> None:
        logger.info("Lifecycle: resuming")
        self._dispatch("on_resume")

    def terminate(self) -> None:
        logger.info("Lifecycle: terminating")
        self._dispatch("on_terminate")

    def _dispatch(self, event: str) -> None:
        # Listeners may unsubscribe while handling the event
        for listener in list(self._listeners):
            try:
                getattr(listener, event)()
            except Exception:
                logger.exception(f"Lifecycle listener {listener!r} failed on {event}")
