"""Services owning local alert state."""

from .alert_sync import AlertSyncService

__all__ = ["AlertSyncService"]
