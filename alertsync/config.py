"""Configuration settings for alertsync."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://g12bbd4aea16cc4-orcl1.adb.ca-toronto-1.oraclecloudapps.com/ords/aitrader/alerts"


class _GroupSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


class ApiSettings(_GroupSettings):
    base_url: str = Field(DEFAULT_BASE_URL, validation_alias="ALERTSYNC_BASE_URL")
    username: str = Field("", validation_alias="ALERTSYNC_USERNAME")
    password: str = Field("", validation_alias="ALERTSYNC_PASSWORD")
    fetch_timeout: float = Field(15, validation_alias="ALERTSYNC_FETCH_TIMEOUT")
    mutation_timeout: float = Field(10, validation_alias="ALERTSYNC_MUTATION_TIMEOUT")
    screening_timeout: float = Field(10, validation_alias="ALERTSYNC_SCREENING_TIMEOUT")


class PollingSettings(_GroupSettings):
    enabled: bool = Field(True, validation_alias="ALERTSYNC_POLLING_ENABLED")
    # Server holds the request until a change or its own timeout
    request_timeout: float = Field(90, validation_alias="ALERTSYNC_POLL_REQUEST_TIMEOUT")
    initial_backoff: float = Field(1.0, validation_alias="ALERTSYNC_POLL_INITIAL_BACKOFF")
    max_backoff: float = Field(30.0, validation_alias="ALERTSYNC_POLL_MAX_BACKOFF")
    jitter_ratio: float = Field(0.3, validation_alias="ALERTSYNC_POLL_JITTER_RATIO")
    suspend_grace: float = Field(5.0, validation_alias="ALERTSYNC_POLL_SUSPEND_GRACE")


class BadgeSettings(_GroupSettings):
    webhook_url: Optional[str] = Field(None, validation_alias="ALERTSYNC_BADGE_WEBHOOK_URL")
    log_updates: bool = Field(True, validation_alias="ALERTSYNC_BADGE_LOG")


class ServerSettings(_GroupSettings):
    host: str = Field("127.0.0.1", validation_alias="ALERTSYNC_HOST")
    port: int = Field(8092, validation_alias="ALERTSYNC_PORT")


class Settings(BaseSettings):
    """Global Application Settings."""
    api: ApiSettings = Field(default_factory=ApiSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    badge: BadgeSettings = Field(default_factory=BadgeSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore"
    )

settings = Settings()
