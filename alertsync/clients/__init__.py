"""Clients for remote services."""

from .alerts_api import AlertsApiClient

__all__ = ["AlertsApiClient"]
