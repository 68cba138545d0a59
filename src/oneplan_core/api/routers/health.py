"""Health probes and Prometheus metrics endpoints."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from ... import __version__
from ...database import Database

logger = logging.getLogger("oneplan-core.health")

router = APIRouter(tags=["health"])

LIVENESS_TIMEOUT = 2.0

_ping_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="health-ping")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _check_database(database: Database, timeout: float) -> dict:
    """Ping the store, bounded by a timeout; never raises."""
    started = time.perf_counter()
    try:
        healthy = _ping_pool.submit(database.ping).result(timeout=timeout)
    except FutureTimeout:
        logger.warning(f"Database check timed out after {timeout}s")
        healthy = False
    except Exception as e:
        logger.warning(f"Database check failed: {e}")
        healthy = False
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    return {"status": "healthy" if healthy else "unhealthy", "responseTime": elapsed_ms}


def _probe(request: Request, timeout: float) -> JSONResponse:
    database_check = _check_database(request.app.state.database, timeout)
    healthy = database_check["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": _timestamp(),
        "version": __version__,
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "checks": {"database": database_check},
    }
    return JSONResponse(content=body, status_code=200 if healthy else 503)


@router.get("/health/live")
def liveness(request: Request):
    """Liveness probe: quick store ping (at most 2 seconds)."""
    timeout = min(request.app.state.settings.health_check_timeout, LIVENESS_TIMEOUT)
    return _probe(request, timeout)


@router.get("/health/ready")
def readiness(request: Request):
    """Readiness probe: store ping bounded by HEALTH_CHECK_TIMEOUT."""
    return _probe(request, request.app.state.settings.health_check_timeout)


@router.get("/health/startup")
def startup():
    """Startup probe: the process is up and serving."""
    return {"status": "ready", "timestamp": _timestamp()}


@router.get("/metrics")
def metrics(request: Request):
    """Prometheus metrics in text exposition format."""
    registry = request.app.state.metrics
    return Response(content=registry.render(), media_type=registry.content_type)
