"""HTTP client for the alerts REST endpoints."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from urllib.parse import urlparse

import aiohttp
from loguru import logger
from pydantic import ValidationError

from alertsync.config import ApiSettings
from alertsync.exceptions import ApiStatusError, InvalidBaseURLError, PayloadError
from alertsync.models import AlertsEnvelope, LastScreeningEnvelope

DEFAULT_HEADERS = {
    "Accept": "application/json",
    # Real-time data, never serve from a cache
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


def _decode(body: bytes) -> str:
    """Decode an error body for logging, replacing undecodable bytes."""
    return body.decode("utf-8", errors="replace")


class AlertsApiClient:
    """Thin aiohttp wrapper around the alerts endpoints."""

    def __init__(self, settings: ApiSettings, session: Optional[aiohttp.ClientSession] = None):
        self.settings = settings
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=DEFAULT_HEADERS)
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def url_for(self, path: str) -> str:
        """Build an endpoint URL, failing fast on a malformed base URL."""
        base = (self.settings.base_url or "").strip().rstrip("/")
        parsed = urlparse(base)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidBaseURLError(base)
        return f"{base}/{path.lstrip('/')}"

    def auth(self) -> Optional[aiohttp.BasicAuth]:
        """Basic credentials, only when both username and password are set."""
        if not self.settings.username or not self.settings.password:
            return None
        return aiohttp.BasicAuth(self.settings.username, self.settings.password, encoding="utf-8")

    async def fetch_all_records(self) -> AlertsEnvelope:
        """GET /all - the full alert snapshot."""
        url = self.url_for("all")
        session = await self._get_session()

        async with session.get(
            url,
            auth=self.auth(),
            timeout=aiohttp.ClientTimeout(total=self.settings.fetch_timeout),
        ) as response:
            body = await response.read()
            if response.status != 200:
                text = _decode(body)
                logger.error(f"Fetch failed: HTTP {response.status} - {text[:200]}")
                raise ApiStatusError(response.status, text)

        try:
            return AlertsEnvelope.model_validate_json(body)
        except ValidationError as e:
            raise PayloadError(f"Malformed alerts envelope: {e.error_count()} errors") from e
        except ValueError as e:
            raise PayloadError(f"Undecodable alerts envelope: {e}") from e

    async def fetch_last_screening(self) -> Optional[str]:
        """GET /changes/last_screening - raw timestamp of the latest screening run."""
        url = self.url_for("changes/last_screening")
        session = await self._get_session()

        async with session.get(
            url,
            auth=self.auth(),
            timeout=aiohttp.ClientTimeout(total=self.settings.screening_timeout),
        ) as response:
            if response.status != 200:
                return None
            body = await response.read()

        try:
            envelope = LastScreeningEnvelope.model_validate_json(body)
        except ValueError as e:
            raise PayloadError("Malformed last screening envelope") from e

        if not envelope.items:
            return None
        return envelope.items[0].last_screening

    async def update_status(self, alert_id: int, status: str) -> None:
        """PUT /alert/{id} with {"status": "READ" | "NEW"}."""
        url = self.url_for(f"alert/{alert_id}")
        session = await self._get_session()

        async with session.put(
            url,
            json={"status": status},
            auth=self.auth(),
            timeout=aiohttp.ClientTimeout(total=self.settings.mutation_timeout),
        ) as response:
            if not 200 <= response.status < 300:
                body = _decode(await response.read())
                logger.error(f"Update failed with status {response.status}")
                raise ApiStatusError(response.status, body)

    async def delete_alert(self, alert_id: int) -> None:
        """DELETE /alert/{id}. Any 2xx (usually 204) counts as success."""
        url = self.url_for(f"alert/{alert_id}")
        session = await self._get_session()

        async with session.delete(
            url,
            auth=self.auth(),
            timeout=aiohttp.ClientTimeout(total=self.settings.mutation_timeout),
        ) as response:
            if not 200 <= response.status < 300:
                raise ApiStatusError(response.status)

    @asynccontextmanager
    async def open_changes(self, timestamp: str, timeout: float) -> AsyncIterator[aiohttp.ClientResponse]:
        """GET /changes/{timestamp}, held open by the server until a change or its own timeout."""
        url = self.url_for(f"changes/{timestamp}")
        session = await self._get_session()

        logger.debug(f"LongPoll: Starting request to {url}")
        async with session.get(
            url,
            auth=self.auth(),
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            yield response
