"""Long-polling for server-side changes."""

from .backoff import Backoff
from .delegate import LongPollDelegate
from .lifecycle import LifecycleEvents, LifecycleListener
from .long_poll import LongPollClient, current_timestamp
from .state import ConnectionState, ConnectionStatus

__all__ = [
    "Backoff",
    "ConnectionState",
    "ConnectionStatus",
    "LifecycleEvents",
    "LifecycleListener",
    "LongPollClient",
    "LongPollDelegate",
    "current_timestamp",
]
