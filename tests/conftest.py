"""Shared fixtures: a live in-process alerts server and clients pointed at it."""

import pytest
import pytest_asyncio
from aiohttp import test_utils

from alertsync.clients import AlertsApiClient
from alertsync.config import ApiSettings, PollingSettings
from support import FakeAlertsServer


@pytest_asyncio.fixture
async def alerts_server():
    fake = FakeAlertsServer()
    server = test_utils.TestServer(fake.build_app())
    await server.start_server()
    fake.base_url = str(server.make_url("/alerts"))
    yield fake
    fake.release_holds()
    await server.close()


@pytest.fixture
def api_settings(alerts_server) -> ApiSettings:
    return ApiSettings(
        base_url=alerts_server.base_url,
        username="",
        password="",
        fetch_timeout=5,
        mutation_timeout=5,
        screening_timeout=5,
    )


@pytest_asyncio.fixture
async def api(api_settings):
    client = AlertsApiClient(api_settings)
    yield client
    await client.close()


@pytest.fixture
def poll_settings() -> PollingSettings:
    return PollingSettings(
        enabled=True,
        request_timeout=5,
        initial_backoff=0.01,
        max_backoff=0.05,
        jitter_ratio=0.0,
        suspend_grace=1,
    )
