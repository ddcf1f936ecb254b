"""
Health check endpoints — used by load balancers, Kubernetes probes, and monitoring.

Never audited: the audit middleware skips any path containing /health.

/health/live  — liveness: is the process running?
/health/ready — readiness: is the audit broker reachable?
/health       — full status with version info
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    timestamp: datetime
    broker: str


def _broker_status(request: Request) -> str:
    pipeline = getattr(request.app.state, "audit_pipeline", None)
    if pipeline is None:
        return "disabled"
    is_connected = getattr(pipeline.connection, "is_connected", None)
    if is_connected is None or is_connected():
        return "connected"
    return "unreachable"


@router.get("/live", status_code=200, summary="Liveness probe")
async def liveness():
    return {"status": "alive"}


@router.get("/ready", status_code=200, summary="Readiness probe")
async def readiness(request: Request):
    broker = _broker_status(request)
    # Broker outage degrades readiness, never fails it
    return {"status": "degraded" if broker == "unreachable" else "ready", "broker": broker}


@router.get("", response_model=HealthResponse, summary="Full health status")
async def health(request: Request):
    broker = _broker_status(request)
    settings = request.app.state.settings
    return HealthResponse(
        status="degraded" if broker == "unreachable" else "healthy",
        version=settings.API_VERSION,
        environment=settings.ENVIRONMENT,
        timestamp=datetime.now(timezone.utc),
        broker=broker,
    )
