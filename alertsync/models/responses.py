"""Wire models for the alerts REST endpoints."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class RawAlertRecord(BaseModel):
    """One alert row as returned by `GET /all`."""

    id: int
    alert_text: str
    alert_source: str
    symbol: str
    symbol_type: str
    underlying: str
    score: str
    status: str
    user_action: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None


class AlertsEnvelope(BaseModel):
    # Records stay raw so a single bad row can be dropped without failing the fetch
    items: list[dict[str, Any]] = Field(default_factory=list)


class LastScreeningItem(BaseModel):
    last_screening: str


class LastScreeningEnvelope(BaseModel):
    items: list[LastScreeningItem] = Field(default_factory=list)


class ChangesResponse(BaseModel):
    """Body of a 200 answer from the long-poll changes endpoint."""

    has_changes: bool
    last_updated: Optional[str] = None
    change_count: Optional[int] = None
