"""Alert data model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertType(str, Enum):
    """Type of trading alert, derived from the alert text."""

    BUY = "BUY"
    SELL = "SELL"
    WARNING = "WARNING"
    INFO = "INFO"


class AlertPriority(str, Enum):
    """Priority level of alert."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def sort_order(self) -> int:
        return _PRIORITY_ORDER[self]


_PRIORITY_ORDER = {AlertPriority.HIGH: 0, AlertPriority.MEDIUM: 1, AlertPriority.LOW: 2}


class AlertSource(str, Enum):
    """System that raised the alert."""

    SCREENER = "SCREENER"
    SCALPER = "SCALPER"
    TRADING_BOT = "TRADING_BOT"
    MANUAL = "MANUAL"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class Alert(BaseModel):
    """Trading alert model."""

    id: int = Field(..., description="Server-assigned alert ID")
    symbol: str = Field(..., description="Underlying ticker symbol")
    message: str = Field(..., description="Alert text")
    type: AlertType = Field(..., description="Derived alert type")
    priority: AlertPriority = Field(default=AlertPriority.LOW)
    source: AlertSource = Field(default=AlertSource.MANUAL)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    is_read: bool = False

    # Optional trading details
    symbol_type: Optional[str] = Field(None, description="'stock' or 'option'")
    option_symbol: Optional[str] = None
    percent_change: Optional[float] = None
    current_price: Optional[float] = None
    target_price: Optional[float] = None

    @property
    def sort_key(self) -> tuple[int, float]:
        # Priority rank ascending, then newest first
        return self.priority.sort_order, -self.created_at.timestamp()


def sort_alerts(alerts: Iterable[Alert]) -> list[Alert]:
    """Return alerts ordered by priority, then by creation time (newest first)."""
    return sorted(alerts, key=lambda alert: alert.sort_key)


def is_sorted(alerts: list[Alert]) -> bool:
    return all(a.sort_key <= b.sort_key for a, b in zip(alerts, alerts[1:]))
