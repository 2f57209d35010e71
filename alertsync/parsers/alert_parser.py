"""Translation of raw server records into Alert models."""

import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from loguru import logger
from pydantic import ValidationError

from alertsync.models import Alert, AlertPriority, AlertSource, AlertType, RawAlertRecord, sort_alerts
from alertsync.models.alert import utcnow


# Keyword groups for type classification, checked in order
TYPE_KEYWORDS = [
    (AlertType.SELL, ["sell", "profit", "overbought", "rip"]),
    (AlertType.BUY, ["buy", "dip", "entry"]),
    (AlertType.WARNING, ["warning", "stop", "loss"]),
]

SOURCE_MAPPING = {
    "SCREENER_BOT": AlertSource.SCREENER,
    "SCREENER": AlertSource.SCREENER,
    "SCALPER": AlertSource.SCALPER,
    "SCALPER_BOT": AlertSource.SCALPER,
    "TRADING_BOT": AlertSource.TRADING_BOT,
}

PRIORITY_MAPPING = {
    "HIGH": AlertPriority.HIGH,
    "MEDIUM": AlertPriority.MEDIUM,
}

# Looks for "-20%", "+15%", "down 20%", "up 15"
PERCENT_PATTERNS = [
    r"(-?\d+\.?\d*)%",
    r"down (\d+\.?\d*)%?",
    r"up (\d+\.?\d*)%?",
]

TIMESTAMP_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",  # no offset, UTC assumed
]

_COMPILED_PERCENT_PATTERNS = [re.compile(p, re.IGNORECASE) for p in PERCENT_PATTERNS]


def classify_alert_type(text: str) -> AlertType:
    """Derive the alert type from free text."""
    lowered = text.lower()
    for alert_type, keywords in TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return alert_type
    return AlertType.INFO


def map_source(value: str) -> AlertSource:
    return SOURCE_MAPPING.get(value.upper(), AlertSource.MANUAL)


def map_priority(score: str) -> AlertPriority:
    return PRIORITY_MAPPING.get(score.upper(), AlertPriority.LOW)


def extract_percent_change(text: str) -> Optional[float]:
    """
    Extract a percent change from alert text.
    The first pattern that matches wins; "down" anywhere in the text makes the value negative.
    Returns None when nothing matches.
    """
    for pattern in _COMPILED_PERCENT_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        try:
            value = float(match.group(1))
        except ValueError:
            continue

        if "down" in text.lower() and value > 0:
            value = -value
        return value

    return None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a server timestamp into an aware UTC datetime, or None."""
    if not value:
        return None

    for fmt in TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return _as_utc(parsed)

    # General ISO-8601 as a last resort
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return _as_utc(parsed)


def _as_utc(parsed: datetime) -> datetime:
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class AlertParser:
    """Convert raw alert records from the server into Alert models."""

    def parse(self, record: dict[str, Any]) -> Optional[Alert]:
        """Parse one raw record. Returns None if the record is malformed."""
        try:
            raw = RawAlertRecord.model_validate(record)
        except ValidationError as e:
            logger.warning(f"Dropping malformed alert record {record.get('id', '?')}: {e.error_count()} errors")
            return None

        return Alert(
            id=raw.id,
            symbol=raw.underlying,
            message=raw.alert_text,
            type=classify_alert_type(raw.alert_text),
            priority=map_priority(raw.score),
            source=map_source(raw.alert_source),
            created_at=parse_timestamp(raw.created_at) or utcnow(),
            updated_at=parse_timestamp(raw.updated_at),
            is_read=raw.status.upper() == "READ",
            symbol_type=raw.symbol_type.lower(),
            option_symbol=raw.symbol,
            percent_change=extract_percent_change(raw.alert_text),
        )

    def parse_many(self, records: Iterable[dict[str, Any]]) -> list[Alert]:
        """Parse records into a sorted list, dropping malformed ones."""
        alerts = []
        for record in records:
            alert = self.parse(record) if isinstance(record, dict) else None
            if alert:
                alerts.append(alert)
        return sort_alerts(alerts)
