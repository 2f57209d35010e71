"""Event interface emitted by the long-poll client."""

from abc import ABC, abstractmethod

from .state import ConnectionState


class LongPollDelegate(ABC):
    """Receives long-poll events. Callbacks run on the event loop and must not block."""

    @abstractmethod
    def on_changes_detected(self) -> None:
        """Server reported that new data is available."""
        pass

    @abstractmethod
    def on_state_changed(self, state: ConnectionState) -> None:
        """Connection state transition."""
        pass

    @abstractmethod
    def on_transient_error(self, error: Exception) -> None:
        """Recoverable failure, for logging only."""
        pass

    @abstractmethod
    def on_resumed_from_background(self) -> None:
        """Host resumed; a full re-fetch is needed to cover the missed window."""
        pass
