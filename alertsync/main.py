"""alertsync - local HTTP API over the synchronized alert mirror."""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from loguru import logger

from alertsync.config import settings
from alertsync.engine import AlertSyncEngine
from alertsync.models import Alert, AlertSource, AlertType


def _install_signal_handlers(engine: AlertSyncEngine) -> None:
    """SIGUSR1 suspends polling, SIGUSR2 resumes it."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGUSR1, engine.lifecycle.suspend)
        loop.add_signal_handler(signal.SIGUSR2, engine.lifecycle.resume)
    except (AttributeError, NotImplementedError, RuntimeError, ValueError) as e:
        # Not available off the main thread or on Windows
        logger.debug(f"Lifecycle signal handlers not installed: {e}")


def _remove_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for name in ("SIGUSR1", "SIGUSR2"):
        sig = getattr(signal, name, None)
        if sig is None:
            continue
        try:
            loop.remove_signal_handler(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            pass


def _dump(alert: Alert) -> dict:
    return alert.model_dump(mode="json")


def create_app(engine: Optional[AlertSyncEngine] = None) -> FastAPI:
    """Build the FastAPI app around an engine (a default one from settings if omitted)."""
    engine = engine or AlertSyncEngine()
    service = engine.service

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        await engine.start()
        _install_signal_handlers(engine)
        yield
        # Shutdown
        _remove_signal_handlers()
        engine.lifecycle.terminate()
        await engine.stop()

    app = FastAPI(
        title="alertsync",
        description="Real-time mirror of trading alerts",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine

    def _require(alert_id: int) -> Alert:
        alert = service.get_alert(alert_id)
        if alert is None:
            raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
        return alert

    @app.get("/api/alerts")
    async def get_alerts(
        type: Optional[AlertType] = None,
        source: Optional[AlertSource] = None,
        search: Optional[str] = None,
        unread: bool = False,
    ):
        """Get alerts, optionally filtered."""
        alerts = service.filter_alerts(type=type, source=source, search=search, unread_only=unread)
        return [_dump(alert) for alert in alerts]

    @app.get("/api/alerts/{alert_id}")
    async def get_alert(alert_id: int):
        return _dump(_require(alert_id))

    @app.post("/api/alerts/read-all")
    async def mark_all_read():
        confirmed = await service.mark_all_as_read()
        return {"confirmed": confirmed, "unread_count": service.unread_count()}

    @app.post("/api/alerts/{alert_id}/read")
    async def mark_read(alert_id: int):
        _require(alert_id)
        confirmed = await service.mark_as_read(alert_id)
        return {"confirmed": confirmed, "alert": _dump(_require(alert_id))}

    @app.post("/api/alerts/{alert_id}/unread")
    async def mark_unread(alert_id: int):
        _require(alert_id)
        confirmed = await service.mark_as_unread(alert_id)
        return {"confirmed": confirmed, "alert": _dump(_require(alert_id))}

    @app.delete("/api/alerts/{alert_id}")
    async def delete_alert(alert_id: int):
        _require(alert_id)
        confirmed = await service.delete_alert(alert_id)
        return {"confirmed": confirmed, "deleted": service.get_alert(alert_id) is None}

    @app.post("/api/refresh")
    async def refresh():
        """Full re-fetch; the UI retry affordance after a fetch error."""
        ok = await service.fetch_all()
        service.refresh_polling()
        return {"ok": ok, "error": service.error_message, "count": len(service.alerts)}

    @app.get("/api/status")
    async def get_status():
        """Get system status."""
        return {
            "status": "running" if engine.running else "stopped",
            "polling": str(service.polling_state),
            "alerts_count": len(service.alerts),
            "unread_count": service.unread_count(),
            "is_loading": service.is_loading,
            "error": service.error_message,
            "last_screening": service.last_screening.isoformat() if service.last_screening else None,
        }

    return app


def main():
    """Run the server."""
    import uvicorn

    logger.info("Starting alertsync server...")
    logger.info(f"Server available at http://{settings.server.host}:{settings.server.port}")
    logger.info(f"Alerts endpoint: {settings.api.base_url}")

    uvicorn.run(
        create_app(),
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
