"""FastAPI app exposing the dashboard analytics."""

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from .errors import StoreError
from .service import MonitoringService

logger = structlog.get_logger(__name__)


def create_app(service: MonitoringService) -> FastAPI:
    app = FastAPI(title="Extraction Monitoring", version="0.1.0")

    # Sync endpoints run on a threadpool worker; release there so the
    # thread-scoped session does not keep its connection.
    @app.get("/health")
    def health() -> JSONResponse:
        try:
            healthy = service.is_healthy()
        finally:
            service.release()
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "degraded",
                "services": {"store": "healthy" if healthy else "unhealthy"},
                "timestamp": _now_iso(),
            },
        )

    @app.get("/analytics")
    def analytics(time_range: Optional[str] = Query(default="24h", alias="timeRange")) -> JSONResponse:
        try:
            data = service.get_analytics(time_range)
        except StoreError as exc:
            logger.error("analytics_failed", time_range=time_range, error=str(exc))
            return _error_response(exc)
        finally:
            service.release()
        return JSONResponse(content={"success": True, "data": data, "timestamp": _now_iso()})

    @app.get("/alerts/summary")
    def alert_summary() -> JSONResponse:
        try:
            data = service.get_alert_summary()
        except StoreError as exc:
            logger.error("alert_summary_failed", error=str(exc))
            return _error_response(exc)
        finally:
            service.release()
        return JSONResponse(content={"success": True, "data": data, "timestamp": _now_iso()})

    return app


def _error_response(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(exc), "timestamp": _now_iso()},
    )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
