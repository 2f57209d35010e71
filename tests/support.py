"""Scripted in-process alerts server and recorders used by the tests."""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Optional

from aiohttp import web

from alertsync.polling import Backoff, ConnectionState, ConnectionStatus, LongPollDelegate


@dataclass
class Scripted:
    """One canned response."""

    status: int
    body: Any = None  # dict/list -> JSON, str -> raw text, bytes -> raw bytes, None -> empty
    delay: float = 0


@dataclass
class RecordedRequest:
    method: str
    path: str
    at: float
    authorization: Optional[str] = None
    timestamp: Optional[str] = None
    json: Any = None


def make_record(
    alert_id: int,
    text: str = "SPY consolidating near highs",
    score: str = "HIGH",
    status: str = "NEW",
    created_at: str = "2025-01-01T10:00:00.000000+00:00",
    source: str = "SCREENER_BOT",
    **overrides,
) -> dict:
    record = {
        "id": alert_id,
        "alert_text": text,
        "alert_source": source,
        "symbol": f"SYM{alert_id}",
        "symbol_type": "OPTION",
        "underlying": f"SYM{alert_id}",
        "score": score,
        "status": status,
        "user_action": None,
        "created_at": created_at,
        "updated_at": None,
    }
    record.update(overrides)
    return record


class FakeAlertsServer:
    """aiohttp.web app speaking the alerts REST protocol, driven by scripts."""

    def __init__(self):
        self.base_url = ""
        self.records: list[dict] = []
        self.all_responses: list[Scripted] = []
        self.changes_script: list[Scripted] = []
        self.screening = Scripted(200, {"items": [{"last_screening": "2025-01-02T03:04:05.000000+00:00"}]})
        self.mutation_status = 200
        self.mutation_body: Optional[bytes] = None
        self.mutation_delay = 0.0
        self.delete_status = 204

        self.requests: list[RecordedRequest] = []
        self.changes_in_flight = 0
        self.max_changes_in_flight = 0
        self.all_in_flight = 0
        self.max_all_in_flight = 0
        self._release = asyncio.Event()

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/alerts/all", self.handle_all)
        app.router.add_get("/alerts/changes/last_screening", self.handle_screening)
        app.router.add_get("/alerts/changes/{timestamp}", self.handle_changes)
        app.router.add_put("/alerts/alert/{alert_id}", self.handle_update)
        app.router.add_delete("/alerts/alert/{alert_id}", self.handle_delete)
        return app

    def release_holds(self) -> None:
        self._release.set()

    # Views over recorded traffic

    @property
    def changes_requests(self) -> list[RecordedRequest]:
        return [r for r in self.requests if r.timestamp is not None]

    def requests_for(self, method: str, prefix: str = "") -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == method and r.path.startswith(f"/alerts/{prefix}")]

    # Handlers

    async def handle_all(self, request: web.Request) -> web.StreamResponse:
        self._record(request)
        self.all_in_flight += 1
        self.max_all_in_flight = max(self.max_all_in_flight, self.all_in_flight)
        try:
            if self.all_responses:
                return await self._respond(self.all_responses.pop(0))
            return web.json_response({"items": self.records})
        finally:
            self.all_in_flight -= 1

    async def handle_screening(self, request: web.Request) -> web.StreamResponse:
        self._record(request)
        return await self._respond(self.screening)

    async def handle_changes(self, request: web.Request) -> web.StreamResponse:
        self._record(request, timestamp=request.match_info["timestamp"])
        self.changes_in_flight += 1
        self.max_changes_in_flight = max(self.max_changes_in_flight, self.changes_in_flight)
        try:
            if self.changes_script:
                return await self._respond(self.changes_script.pop(0))
            # Hold like a real long-poll endpoint until the test lets go
            await self._release.wait()
            return web.Response(status=204)
        finally:
            self.changes_in_flight -= 1

    async def handle_update(self, request: web.Request) -> web.StreamResponse:
        body = await request.json()
        self._record(request, json=body)
        if self.mutation_delay:
            await asyncio.sleep(self.mutation_delay)
        if 200 <= self.mutation_status < 300:
            alert_id = int(request.match_info["alert_id"])
            for record in self.records:
                if record["id"] == alert_id:
                    record["status"] = body["status"]
        if self.mutation_body is not None:
            return _raw(self.mutation_body, self.mutation_status)
        return web.Response(status=self.mutation_status)

    async def handle_delete(self, request: web.Request) -> web.StreamResponse:
        self._record(request)
        if self.mutation_delay:
            await asyncio.sleep(self.mutation_delay)
        if 200 <= self.delete_status < 300:
            alert_id = int(request.match_info["alert_id"])
            self.records = [r for r in self.records if r["id"] != alert_id]
        return web.Response(status=self.delete_status)

    def _record(self, request: web.Request, **extra) -> None:
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                at=asyncio.get_running_loop().time(),
                authorization=request.headers.get("Authorization"),
                **extra,
            )
        )

    async def _respond(self, scripted: Scripted) -> web.StreamResponse:
        if scripted.delay:
            await asyncio.sleep(scripted.delay)
        if isinstance(scripted.body, (dict, list)):
            return web.json_response(scripted.body, status=scripted.status)
        if isinstance(scripted.body, str):
            return web.Response(text=scripted.body, status=scripted.status, content_type="application/json")
        if isinstance(scripted.body, bytes):
            return _raw(scripted.body, scripted.status)
        return web.Response(status=scripted.status)


def _raw(body: bytes, status: int) -> web.Response:
    return web.Response(body=body, status=status, content_type="application/json", charset="utf-8")


class RecordingDelegate(LongPollDelegate):
    """Collects every long-poll event in order."""

    def __init__(self):
        self.events: list[tuple] = []

    def on_changes_detected(self) -> None:
        self.events.append(("changes",))

    def on_state_changed(self, state: ConnectionState) -> None:
        self.events.append(("state", state))

    def on_transient_error(self, error: Exception) -> None:
        self.events.append(("error", error))

    def on_resumed_from_background(self) -> None:
        self.events.append(("resumed",))

    def count(self, kind: str) -> int:
        return sum(1 for event in self.events if event[0] == kind)

    @property
    def states(self) -> list[ConnectionState]:
        return [event[1] for event in self.events if event[0] == "state"]

    @property
    def reconnect_attempts(self) -> list[int]:
        return [s.attempt for s in self.states if s.status == ConnectionStatus.RECONNECTING]


class RecordingBackoff(Backoff):
    """Backoff that remembers every delay it handed out."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.delays: list[float] = []

    def next_delay(self) -> tuple[int, float]:
        attempt, delay = super().next_delay()
        self.delays.append(delay)
        return attempt, delay


def no_jitter(low: float, high: float) -> float:
    return low


def max_jitter(low: float, high: float) -> float:
    return high


async def wait_until(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.005) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)
