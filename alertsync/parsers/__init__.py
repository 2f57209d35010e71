"""Parsing of raw server records."""

from .alert_parser import (
    AlertParser,
    classify_alert_type,
    extract_percent_change,
    map_priority,
    map_source,
    parse_timestamp,
)

__all__ = [
    "AlertParser",
    "classify_alert_type",
    "extract_percent_change",
    "map_priority",
    "map_source",
    "parse_timestamp",
]
