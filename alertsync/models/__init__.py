"""Data models."""

from .alert import Alert, AlertPriority, AlertSource, AlertType, is_sorted, sort_alerts
from .responses import (
    AlertsEnvelope,
    ChangesResponse,
    LastScreeningEnvelope,
    LastScreeningItem,
    RawAlertRecord,
)

__all__ = [
    "Alert",
    "AlertPriority",
    "AlertSource",
    "AlertType",
    "AlertsEnvelope",
    "ChangesResponse",
    "LastScreeningEnvelope",
    "LastScreeningItem",
    "RawAlertRecord",
    "is_sorted",
    "sort_alerts",
]
